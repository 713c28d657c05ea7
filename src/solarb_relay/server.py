"""
Relay HTTP server: quotes the cyclic route, builds unsigned swaps and submits signed ones
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import Counter, Gauge
from solana.rpc.async_api import AsyncClient

from .config import RelaySettings, configure_logging, initialize_config
from .constants import ERROR_MESSAGES, REASON_NO_ROUTE, lamports_to_sol
from .errors import ArbitrageError, BuildError, NoRouteFound
from .metrics import start_metrics_server
from .modules.arbitrage import RouteEvaluator
from .modules.jupiter import JupiterClient
from .modules.rate_limiter import create_rate_limiter
from .modules.chain import create_rpc_client
from .modules.transaction import TransactionBuilder, TransactionExecutor

logger = logging.getLogger(__name__)

# Metrics
check_counter = Counter('relay_arbitrage_checks_total', 'Route evaluations served')
opportunity_counter = Counter('relay_profitable_opportunities_total', 'Evaluations that cleared the profit floor')
last_profit_gauge = Gauge('relay_last_profit_lamports', 'Profit of the most recent evaluation')
submission_counter = Counter('relay_transactions_submitted_total', 'Signed transactions by outcome', ['outcome'])

ERROR_STATUS = {
    "NO_ROUTE": 404,
    "BUILD_FAILED": 502,
    "SIGNING_REJECTED": 400,
    "SUBMISSION_FAILED": 500,
    "CONFIRMATION_TIMEOUT": 504,
    "BACKEND_UNREACHABLE": 502,
}

RELAY_KEY = web.AppKey("relay", object)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == 'OPTIONS':
        response = web.Response()
    else:
        try:
            response = await handler(request)
        except web.HTTPException as e:
            e.headers.update(CORS_HEADERS)
            raise
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Typed errors become structured JSON; anything else is a logged 500"""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ArbitrageError as e:
        logger.error(f"{request.method} {request.path}: {e.error_type} {e.message}")
        return web.json_response(e.to_dict(), status=ERROR_STATUS.get(e.error_type, 500))
    except Exception as e:
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return web.json_response({'error': str(e), 'errorType': 'INTERNAL'}, status=500)


async def _json_body(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be JSON"}', content_type='application/json'
        )
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be an object"}', content_type='application/json'
        )
    return body


class RelayServer:
    """Holds the relay's clients and serves its routes"""

    def __init__(
        self,
        settings: RelaySettings,
        jupiter: Optional[JupiterClient] = None,
        rpc: Optional[AsyncClient] = None
    ):
        self.settings = settings
        self.jupiter = jupiter or JupiterClient(
            settings.jupiter_api, rate_limiter=create_rate_limiter("jupiter")
        )
        self.rpc = rpc or create_rpc_client(settings.rpc_endpoint)
        self.evaluator = RouteEvaluator(
            self.jupiter,
            route=settings.route,
            trade_amount=settings.trade_amount,
            min_profit=settings.min_profit_lamports,
            slippage_bps=settings.slippage_bps
        )
        self.builder = TransactionBuilder(self.jupiter)
        self.executor = TransactionExecutor(
            self.rpc,
            rate_limiter=create_rate_limiter("rpc"),
            confirmation_timeout=settings.confirmation_timeout_seconds
        )

    async def close(self):
        await self.jupiter.close()
        await self.rpc.close()

    async def health(self, request: web.Request) -> web.Response:
        rpc_ok = await self.rpc.is_connected()
        return web.json_response({
            'status': 'healthy' if rpc_ok else 'degraded',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'rpc': self.settings.rpc_endpoint
        })

    async def balance(self, request: web.Request) -> web.Response:
        address = request.match_info['address']
        try:
            lamports = await self.executor.get_balance(address)
        except ValueError as e:
            return web.json_response({'error': str(e)}, status=400)
        return web.json_response({
            'balance': float(lamports_to_sol(lamports)),
            'lamports': str(lamports)
        })

    async def arb(self, request: web.Request) -> web.Response:
        check_counter.inc()
        decision = await self.evaluator.evaluate()
        if decision is None:
            return web.json_response(self.evaluator.no_route_response())

        last_profit_gauge.set(decision.profit)
        if decision.profitable:
            opportunity_counter.inc()
        return web.json_response(decision.to_dict())

    async def create_swap_transactions(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        user_public_key = body.get('userPublicKey')
        if not user_public_key:
            return web.json_response(
                {'profitable': False, 'error': 'userPublicKey is required'}, status=400
            )

        decision = await self.evaluator.evaluate()
        if decision is None:
            return web.json_response({'profitable': False, 'error': REASON_NO_ROUTE})
        if not decision.profitable:
            return web.json_response(decision.to_dict())

        try:
            transaction_set = await self.builder.build_unsigned_transactions(
                decision.opportunity,
                user_public_key,
                descriptions=self.evaluator.hop_descriptions()
            )
        except BuildError as e:
            logger.error(f"Build failed: {e.message}")
            return web.json_response(
                {'profitable': False, **e.to_dict()}, status=ERROR_STATUS[e.error_type]
            )

        return web.json_response(transaction_set.to_dict())

    async def execute_signed_transaction(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        signed_transaction = body.get('signedTransaction')
        user_public_key = body.get('userPublicKey')
        try:
            step = int(body.get('step'))
        except (TypeError, ValueError):
            step = None

        if not signed_transaction or not user_public_key or step is None:
            return web.json_response({
                'success': False,
                'error': 'signedTransaction, step and userPublicKey are required',
                'step': step
            }, status=400)

        try:
            result = await self.executor.execute_signed_transaction(
                signed_transaction, step, user_public_key
            )
        except ValueError as e:
            return web.json_response(
                {'success': False, 'error': str(e), 'step': step}, status=400
            )
        except ArbitrageError as e:
            submission_counter.labels(outcome='failed').inc()
            payload = {'success': False, **e.to_dict()}
            payload.setdefault('step', step)
            return web.json_response(payload, status=ERROR_STATUS.get(e.error_type, 500))

        submission_counter.labels(outcome='confirmed' if result.confirmed else 'unconfirmed').inc()
        return web.json_response(result.to_dict())

    async def transaction_status(self, request: web.Request) -> web.Response:
        signature = request.match_info['signature']
        try:
            status = await self.executor.get_transaction_status(signature)
        except ValueError as e:
            return web.json_response({'error': str(e)}, status=400)
        return web.json_response({'signature': signature, 'status': status})

    async def quote(self, request: web.Request) -> web.Response:
        query = request.query
        input_mint = query.get('inputMint')
        output_mint = query.get('outputMint')
        try:
            amount = int(query.get('amount', ''))
            slippage_bps = int(query.get('slippageBps', self.settings.manual_slippage_bps))
        except ValueError:
            return web.json_response({'error': 'amount and slippageBps must be integers'}, status=400)

        if not input_mint or not output_mint or amount <= 0:
            return web.json_response(
                {'error': 'inputMint, outputMint and a positive amount are required'}, status=400
            )

        data = await self.jupiter.get_raw_quote(input_mint, output_mint, amount, slippage_bps)
        if not data:
            raise NoRouteFound(f"{REASON_NO_ROUTE} for {input_mint} -> {output_mint}")
        return web.json_response(data)

    async def swap_transaction(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        quote_response = body.get('quoteResponse')
        user_public_key = body.get('userPublicKey')
        if not quote_response or not user_public_key:
            return web.json_response(
                {'error': 'quoteResponse and userPublicKey are required'}, status=400
            )

        transaction = await self.jupiter.get_swap_transaction(quote_response, user_public_key)
        if not transaction:
            raise BuildError(ERROR_MESSAGES['BUILD_FAILED'])
        return web.json_response({'transaction': transaction})


def create_app(
    settings: RelaySettings,
    jupiter: Optional[JupiterClient] = None,
    rpc: Optional[AsyncClient] = None
) -> web.Application:
    relay = RelayServer(settings, jupiter=jupiter, rpc=rpc)

    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app[RELAY_KEY] = relay
    app.router.add_get('/health', relay.health)
    app.router.add_get('/balance/{address}', relay.balance)
    app.router.add_get('/arb', relay.arb)
    app.router.add_post('/create-swap-transactions', relay.create_swap_transactions)
    app.router.add_post('/execute-signed-transaction', relay.execute_signed_transaction)
    app.router.add_get('/transaction-status/{signature}', relay.transaction_status)
    app.router.add_get('/quote', relay.quote)
    app.router.add_post('/swap-transaction', relay.swap_transaction)

    async def on_cleanup(app: web.Application):
        await app[RELAY_KEY].close()

    app.on_cleanup.append(on_cleanup)
    return app


def main():
    """Main entry point"""
    configure_logging("relay")
    config = initialize_config()
    settings = config.relay

    start_metrics_server(settings.metrics_port)
    logger.info(
        f"Relay starting on {settings.host}:{settings.port}, route "
        f"{' → '.join(settings.route + [settings.route[0]])}, RPC {settings.rpc_endpoint}"
    )
    web.run_app(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
