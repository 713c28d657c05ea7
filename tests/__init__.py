"""
Test suite for the Solana arbitrage relay

Run all tests with: pytest tests/
"""

import base64
import os
import sys
from unittest.mock import Mock

import base58
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

# Add src directory to Python path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

TEST_ADDRESS = base58.b58encode(bytes([3] * 32)).decode("utf-8")
TEST_SIGNATURE = base58.b58encode(bytes([7] * 64)).decode("utf-8")
TEST_PROGRAM = Pubkey(bytes(range(1, 33)))


def build_unsigned_transaction(payer: Pubkey, versioned: bool = False) -> str:
    """Base64 transaction with one empty signature slot for ``payer``"""
    instruction = Instruction(TEST_PROGRAM, bytes([1]), [])
    if versioned:
        message = MessageV0.try_compile(
            payer=payer,
            instructions=[instruction],
            address_lookup_table_accounts=[],
            recent_blockhash=Hash.default()
        )
    else:
        message = Message.new_with_blockhash([instruction], payer, Hash.default())
    transaction = VersionedTransaction.populate(message, [Signature.default()])
    return base64.b64encode(bytes(transaction)).decode('utf-8')


def rpc_response(value):
    """Stand-in for a typed solana-py response"""
    return Mock(value=value)
