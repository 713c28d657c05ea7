"""
Error taxonomy shared by the relay and the bot
"""

from typing import Optional


class ArbitrageError(Exception):
    """Base error carrying a stable type tag and a readable reason"""

    error_type = "ARBITRAGE_ERROR"

    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def to_dict(self) -> dict:
        payload = {"error": self.message, "errorType": self.error_type}
        if self.step is not None:
            payload["step"] = self.step
        return payload


class NoRouteFound(ArbitrageError):
    """A quote hop returned no output amount"""

    error_type = "NO_ROUTE"


class BuildError(ArbitrageError):
    """The aggregator failed to construct a swap transaction"""

    error_type = "BUILD_FAILED"


class SigningRejected(ArbitrageError):
    """The wallet declined or could not sign"""

    error_type = "SIGNING_REJECTED"


class SubmissionError(ArbitrageError):
    """The chain rejected the transaction"""

    error_type = "SUBMISSION_FAILED"


class ConfirmationTimeout(ArbitrageError):
    """The chain did not confirm within the wait window"""

    error_type = "CONFIRMATION_TIMEOUT"


class BackendUnreachable(ArbitrageError):
    """Relay or RPC node not reachable"""

    error_type = "BACKEND_UNREACHABLE"


class TradeInProgress(ArbitrageError):
    """An execution is already in flight"""

    error_type = "TRADE_IN_PROGRESS"


ERROR_TYPES = {
    cls.error_type: cls
    for cls in (
        NoRouteFound,
        BuildError,
        SigningRejected,
        SubmissionError,
        ConfirmationTimeout,
        BackendUnreachable,
        TradeInProgress
    )
}


def error_from_payload(payload: dict, default=BackendUnreachable) -> ArbitrageError:
    """Rebuild a typed error from the JSON a relay handler returned"""
    error_class = ERROR_TYPES.get(payload.get("errorType"), default)
    step = payload.get("step")
    return error_class(
        payload.get("error") or payload.get("reason") or "Unknown error",
        step=int(step) if step is not None else None
    )
