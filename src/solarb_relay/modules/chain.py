"""
Solana client helpers shared by the relay executor and the bot signer
"""

import base64
import binascii

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from ..constants import (
    COMMITMENT_CONFIRMED,
    COMMITMENT_FINALIZED,
    COMMITMENT_PROCESSED,
    ERROR_MESSAGES,
    REQUEST_TIMEOUT_SECONDS
)

# Transport failures and JSON-RPC error replies
RPC_ERRORS = (SolanaRpcException, RPCException)

LANDED_STATUSES = (TransactionConfirmationStatus.Confirmed, TransactionConfirmationStatus.Finalized)

STATUS_NAMES = (
    (TransactionConfirmationStatus.Processed, COMMITMENT_PROCESSED),
    (TransactionConfirmationStatus.Confirmed, COMMITMENT_CONFIRMED),
    (TransactionConfirmationStatus.Finalized, COMMITMENT_FINALIZED),
)


def create_rpc_client(endpoint: str, timeout: float = REQUEST_TIMEOUT_SECONDS) -> AsyncClient:
    return AsyncClient(endpoint, timeout=timeout)


def response_value(response):
    """``value`` of a typed RPC response; error replies come back without one"""
    if not hasattr(response, 'value'):
        raise RPCException(response)
    return response.value


def status_name(confirmation_status) -> str:
    for status, name in STATUS_NAMES:
        if confirmation_status == status:
            return name
    return "unknown"


def parse_pubkey(address: str) -> Pubkey:
    """ValueError when the address is not a base58 32-byte key"""
    if not address or not isinstance(address, str):
        raise ValueError(ERROR_MESSAGES["INVALID_ADDRESS"])
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise ValueError(f"{ERROR_MESSAGES['INVALID_ADDRESS']}: {address}") from e


def parse_signature(signature: str) -> Signature:
    if not signature or not isinstance(signature, str):
        raise ValueError(f"Invalid signature: {signature!r}")
    try:
        return Signature.from_string(signature)
    except ValueError as e:
        raise ValueError(f"Invalid signature: {signature}") from e


def decode_transaction(encoded: str) -> VersionedTransaction:
    """Base64 wire bytes to a transaction; ValueError when either layer is malformed"""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, TypeError) as e:
        raise ValueError(f"Not valid base64: {e}") from e
    return VersionedTransaction.from_bytes(raw)


def encode_transaction(transaction: VersionedTransaction) -> str:
    return base64.b64encode(bytes(transaction)).decode('utf-8')


def required_signers(transaction: VersionedTransaction):
    message = transaction.message
    return list(message.account_keys[:message.header.num_required_signatures])


def signer_index(transaction: VersionedTransaction, pubkey: Pubkey) -> int:
    try:
        return required_signers(transaction).index(pubkey)
    except ValueError:
        raise ValueError("Key is not a required signer of this transaction") from None


def is_fully_signed(transaction: VersionedTransaction) -> bool:
    signatures = transaction.signatures
    if len(signatures) < transaction.message.header.num_required_signatures:
        return False
    empty = Signature.default()
    return all(signature != empty for signature in signatures)
