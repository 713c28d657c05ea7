"""Tests for the relay HTTP surface"""

import pytest
from aiohttp import test_utils
from solana.exceptions import SolanaRpcException
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus
from unittest.mock import AsyncMock, Mock

from solarb_relay.config import RelaySettings
from solarb_relay.constants import DEFAULT_ROUTE
from solarb_relay.modules.signer import KeypairSigner
from solarb_relay.server import create_app

from tests import TEST_ADDRESS, TEST_SIGNATURE, build_unsigned_transaction, rpc_response
from tests.test_arbitrage import make_quote


def settings() -> RelaySettings:
    return RelaySettings(
        rpc_endpoint="http://rpc.test",
        jupiter_api="http://jupiter.test",
        route=list(DEFAULT_ROUTE),
        trade_amount=500_000_000,
        min_profit_lamports=10_000_000,
        slippage_bps=300,
        manual_slippage_bps=50,
        confirmation_timeout_seconds=0.05,
        host="127.0.0.1",
        port=0,
        metrics_port=0
    )


def make_jupiter(final_amount: int = 510_500_000):
    outputs = [75_000_000, 74_900_000, final_amount]

    async def get_quote(input_mint, output_mint, amount, slippage_bps):
        output = outputs.pop(0)
        if output is None:
            return None
        return make_quote(input_mint, output_mint, amount, output)

    jupiter = Mock()
    jupiter.get_quote = AsyncMock(side_effect=get_quote)
    jupiter.get_swap_transaction = AsyncMock(side_effect=['tx1', 'tx2', 'tx3'])
    jupiter.get_raw_quote = AsyncMock(return_value={'outAmount': '150000000'})
    jupiter.close = AsyncMock()
    return jupiter


def make_rpc():
    rpc = Mock()
    rpc.is_connected = AsyncMock(return_value=True)
    rpc.get_balance = AsyncMock(return_value=rpc_response(1_500_000_000))
    rpc.send_raw_transaction = AsyncMock(
        return_value=rpc_response(Signature.from_string(TEST_SIGNATURE))
    )
    rpc.get_signature_statuses = AsyncMock(
        return_value=rpc_response([
            Mock(err=None, confirmation_status=TransactionConfirmationStatus.Finalized)
        ])
    )
    rpc.close = AsyncMock()
    return rpc


async def client_for(jupiter=None, rpc=None) -> test_utils.TestClient:
    app = create_app(settings(), jupiter=jupiter or make_jupiter(), rpc=rpc or make_rpc())
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    return client


class TestHealthAndBalance:
    """Test /health and /balance"""

    @pytest.mark.asyncio
    async def test_health(self):
        client = await client_for()
        try:
            response = await client.get('/health')
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert data['status'] == 'healthy'
        assert data['rpc'] == 'http://rpc.test'
        assert 'timestamp' in data
        assert response.headers['Access-Control-Allow-Origin'] == '*'

    @pytest.mark.asyncio
    async def test_health_degraded(self):
        rpc = make_rpc()
        rpc.is_connected = AsyncMock(return_value=False)
        client = await client_for(rpc=rpc)
        try:
            data = await (await client.get('/health')).json()
        finally:
            await client.close()

        assert data['status'] == 'degraded'

    @pytest.mark.asyncio
    async def test_balance(self):
        client = await client_for()
        try:
            response = await client.get(f'/balance/{TEST_ADDRESS}')
            data = await response.json()
        finally:
            await client.close()

        assert data['balance'] == 1.5
        assert data['lamports'] == '1500000000'

    @pytest.mark.asyncio
    async def test_balance_invalid_address(self):
        client = await client_for()
        try:
            response = await client.get('/balance/not-a-key')
        finally:
            await client.close()

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_balance_rpc_down(self):
        rpc = make_rpc()
        rpc.get_balance = AsyncMock(side_effect=SolanaRpcException("getBalance timed out"))
        client = await client_for(rpc=rpc)
        try:
            response = await client.get(f'/balance/{TEST_ADDRESS}')
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 502
        assert data['errorType'] == 'BACKEND_UNREACHABLE'


class TestArbitrageEndpoints:
    """Test /arb and /create-swap-transactions"""

    @pytest.mark.asyncio
    async def test_arb_profitable(self):
        client = await client_for()
        try:
            data = await (await client.get('/arb')).json()
        finally:
            await client.close()

        assert data == {
            'profitable': True,
            'profit': '10500000',
            'reason': 'Profitable opportunity found',
            'tokenAmounts': {
                'sol': '500000000',
                'usdt': '75000000',
                'usdc': '74900000',
                'finalSol': '510500000'
            }
        }

    @pytest.mark.asyncio
    async def test_arb_not_enough_profit(self):
        client = await client_for(jupiter=make_jupiter(505_000_000))
        try:
            data = await (await client.get('/arb')).json()
        finally:
            await client.close()

        assert data['profitable'] is False
        assert data['profit'] == '5000000'
        assert data['reason'] == 'Not enough profit'

    @pytest.mark.asyncio
    async def test_arb_no_route(self):
        client = await client_for(jupiter=make_jupiter(None))
        try:
            data = await (await client.get('/arb')).json()
        finally:
            await client.close()

        assert data == {'profitable': False, 'error': 'No routes found'}

    @pytest.mark.asyncio
    async def test_create_swap_transactions(self):
        jupiter = make_jupiter()
        client = await client_for(jupiter=jupiter)
        try:
            response = await client.post(
                '/create-swap-transactions', json={'userPublicKey': TEST_ADDRESS}
            )
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert data['profitable'] is True
        assert data['profit'] == '10500000'
        assert data['transactions'] == [
            {'step': 1, 'transaction': 'tx1', 'description': 'SOL → USDT'},
            {'step': 2, 'transaction': 'tx2', 'description': 'USDT → USDC'},
            {'step': 3, 'transaction': 'tx3', 'description': 'USDC → SOL'},
        ]
        assert jupiter.get_swap_transaction.call_args.args[1] == TEST_ADDRESS

    @pytest.mark.asyncio
    async def test_create_swap_transactions_not_profitable(self):
        jupiter = make_jupiter(505_000_000)
        client = await client_for(jupiter=jupiter)
        try:
            data = await (await client.post(
                '/create-swap-transactions', json={'userPublicKey': TEST_ADDRESS}
            )).json()
        finally:
            await client.close()

        assert data['profitable'] is False
        assert data['reason'] == 'Not enough profit'
        jupiter.get_swap_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_swap_transactions_build_failure(self):
        jupiter = make_jupiter()
        jupiter.get_swap_transaction = AsyncMock(side_effect=['tx1', None, 'tx3'])
        client = await client_for(jupiter=jupiter)
        try:
            response = await client.post(
                '/create-swap-transactions', json={'userPublicKey': TEST_ADDRESS}
            )
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 502
        assert data['profitable'] is False
        assert data['errorType'] == 'BUILD_FAILED'
        assert data['step'] == 2
        assert 'transactions' not in data

    @pytest.mark.asyncio
    async def test_create_swap_transactions_requires_key(self):
        client = await client_for()
        try:
            response = await client.post('/create-swap-transactions', json={})
        finally:
            await client.close()

        assert response.status == 400


class TestExecuteSignedTransaction:
    """Test /execute-signed-transaction and /transaction-status"""

    async def _signed(self):
        signer = KeypairSigner.generate()
        await signer.connect()
        unsigned = build_unsigned_transaction(signer.keypair.pubkey())
        return await signer.sign_transaction(unsigned), signer.address

    @pytest.mark.asyncio
    async def test_execute(self):
        signed, address = await self._signed()
        rpc = make_rpc()
        rpc.get_balance = AsyncMock(
            side_effect=[rpc_response(1_000_000_000), rpc_response(999_995_000)]
        )
        client = await client_for(rpc=rpc)
        try:
            response = await client.post('/execute-signed-transaction', json={
                'signedTransaction': signed, 'step': 1, 'userPublicKey': address
            })
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert data == {
            'success': True,
            'signature': TEST_SIGNATURE,
            'step': 1,
            'balanceBefore': '1000000000',
            'balanceAfter': '999995000',
            'balanceChange': '-5000',
            'confirmed': True
        }

    @pytest.mark.asyncio
    async def test_execute_balance_unreadable_after_send(self):
        """The landed signature is still returned when the closing balance read fails"""
        signed, address = await self._signed()
        rpc = make_rpc()
        rpc.get_balance = AsyncMock(
            side_effect=[rpc_response(1_500_000_000), SolanaRpcException("getBalance timed out")]
        )
        client = await client_for(rpc=rpc)
        try:
            response = await client.post('/execute-signed-transaction', json={
                'signedTransaction': signed, 'step': 1, 'userPublicKey': address
            })
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 200
        assert data['success'] is True
        assert data['signature'] == TEST_SIGNATURE
        assert data['balanceBefore'] == '1500000000'
        assert data['balanceAfter'] is None
        assert 'balanceChange' not in data
        rpc.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_execute_rejected(self):
        signed, address = await self._signed()
        rpc = make_rpc()
        rpc.send_raw_transaction = AsyncMock(side_effect=SolanaRpcException("sendTransaction rejected"))
        client = await client_for(rpc=rpc)
        try:
            response = await client.post('/execute-signed-transaction', json={
                'signedTransaction': signed, 'step': 2, 'userPublicKey': address
            })
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 500
        assert data['success'] is False
        assert data['errorType'] == 'SUBMISSION_FAILED'
        assert data['step'] == 2

    @pytest.mark.asyncio
    async def test_execute_missing_fields(self):
        client = await client_for()
        try:
            response = await client.post('/execute-signed-transaction', json={'step': 1})
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 400
        assert data['success'] is False

    @pytest.mark.asyncio
    async def test_execute_invalid_json(self):
        client = await client_for()
        try:
            response = await client.post('/execute-signed-transaction', data='not json')
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 400
        assert data['error'] == 'Request body must be JSON'
        assert response.headers['Access-Control-Allow-Origin'] == '*'

    @pytest.mark.asyncio
    async def test_non_object_body_has_cors_headers(self):
        client = await client_for()
        try:
            response = await client.post('/swap-transaction', json=['not', 'an', 'object'])
        finally:
            await client.close()

        assert response.status == 400
        assert response.headers['Access-Control-Allow-Origin'] == '*'

    @pytest.mark.asyncio
    async def test_transaction_status(self):
        client = await client_for()
        try:
            data = await (await client.get(f'/transaction-status/{TEST_SIGNATURE}')).json()
        finally:
            await client.close()

        assert data == {'signature': TEST_SIGNATURE, 'status': 'finalized'}


class TestManualSwapEndpoints:
    """Test /quote and /swap-transaction"""

    @pytest.mark.asyncio
    async def test_quote_defaults_to_manual_slippage(self):
        jupiter = make_jupiter()
        client = await client_for(jupiter=jupiter)
        try:
            response = await client.get('/quote', params={
                'inputMint': 'A', 'outputMint': 'B', 'amount': '1000'
            })
            data = await response.json()
        finally:
            await client.close()

        assert data == {'outAmount': '150000000'}
        jupiter.get_raw_quote.assert_awaited_with('A', 'B', 1000, 50)

    @pytest.mark.asyncio
    async def test_quote_no_route(self):
        jupiter = make_jupiter()
        jupiter.get_raw_quote = AsyncMock(return_value=None)
        client = await client_for(jupiter=jupiter)
        try:
            response = await client.get('/quote', params={
                'inputMint': 'A', 'outputMint': 'B', 'amount': '1000'
            })
            data = await response.json()
        finally:
            await client.close()

        assert response.status == 404
        assert data['errorType'] == 'NO_ROUTE'
        assert data['error'] == 'No routes found for A -> B'
        assert response.headers['Access-Control-Allow-Origin'] == '*'

    @pytest.mark.asyncio
    async def test_quote_bad_amount(self):
        client = await client_for()
        try:
            response = await client.get('/quote', params={
                'inputMint': 'A', 'outputMint': 'B', 'amount': 'lots'
            })
        finally:
            await client.close()

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_swap_transaction(self):
        jupiter = make_jupiter()
        jupiter.get_swap_transaction = AsyncMock(return_value='AQID')
        client = await client_for(jupiter=jupiter)
        try:
            data = await (await client.post('/swap-transaction', json={
                'quoteResponse': {'outAmount': '1'}, 'userPublicKey': TEST_ADDRESS
            })).json()
        finally:
            await client.close()

        assert data == {'transaction': 'AQID'}

    @pytest.mark.asyncio
    async def test_cors_preflight(self):
        client = await client_for()
        try:
            response = await client.options('/arb')
        finally:
            await client.close()

        assert response.status == 200
        assert 'POST' in response.headers['Access-Control-Allow-Methods']
