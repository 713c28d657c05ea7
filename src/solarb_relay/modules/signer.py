"""
Wallet signers for the bot side of the relay
"""

import json
import logging
import os
from typing import Optional

import base58
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.transaction import VersionedTransaction

from .chain import decode_transaction, encode_transaction, signer_index
from ..errors import SigningRejected

logger = logging.getLogger(__name__)


class Signer:
    """Wallet contract: connect, disconnect, sign a base64 transaction"""

    @property
    def connected(self) -> bool:
        raise NotImplementedError

    @property
    def public_key(self) -> Optional[str]:
        raise NotImplementedError

    async def connect(self) -> str:
        raise NotImplementedError

    async def disconnect(self):
        raise NotImplementedError

    async def sign_transaction(self, unsigned_transaction: str) -> str:
        raise NotImplementedError


class KeypairSigner(Signer):
    """Signs with a local solders Keypair"""

    def __init__(self, keypair: Keypair):
        self.keypair = keypair
        self._address = str(keypair.pubkey())
        self._connected = False

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> 'KeypairSigner':
        """Accepts a 32-byte seed or the 64-byte seed+pubkey form wallets export"""
        if len(secret_key) not in (32, 64):
            raise ValueError(f"Secret key must be 32 or 64 bytes, got {len(secret_key)}")
        keypair = Keypair.from_seed(bytes(secret_key[:32]))
        if len(secret_key) == 64 and bytes(keypair.pubkey()) != bytes(secret_key[32:]):
            raise ValueError("Secret key does not match its embedded public key")
        return cls(keypair)

    @classmethod
    def from_base58(cls, secret_key: str) -> 'KeypairSigner':
        return cls.from_secret_key(base58.b58decode(secret_key))

    @classmethod
    def generate(cls) -> 'KeypairSigner':
        return cls(Keypair())

    @classmethod
    def load(cls, wallet_path: str = "wallet.json") -> 'KeypairSigner':
        """Load from SOLANA_PRIVATE_KEY, falling back to a wallet file"""
        if 'SOLANA_PRIVATE_KEY' in os.environ:
            return cls.from_base58(os.environ['SOLANA_PRIVATE_KEY'])

        if os.path.exists(wallet_path):
            with open(wallet_path, 'r') as f:
                wallet_data = json.load(f)
            return cls.from_base58(wallet_data['secret_key'])

        raise ValueError("No wallet found. Set SOLANA_PRIVATE_KEY or create wallet.json")

    @property
    def address(self) -> str:
        return self._address

    @property
    def secret_key_base58(self) -> str:
        return base58.b58encode(bytes(self.keypair)).decode('utf-8')

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def public_key(self) -> Optional[str]:
        return self._address if self._connected else None

    async def connect(self) -> str:
        self._connected = True
        logger.info(f"Signer connected: {self._address[:8]}...{self._address[-4:]}")
        return self._address

    async def disconnect(self):
        self._connected = False
        logger.info("Signer disconnected")

    async def sign_transaction(self, unsigned_transaction: str) -> str:
        """Fill this key's signature slot, keeping any other signatures"""
        if not self._connected:
            raise SigningRejected("Signer not connected")

        try:
            transaction = decode_transaction(unsigned_transaction)
            index = signer_index(transaction, self.keypair.pubkey())
            if index >= len(transaction.signatures):
                raise ValueError("Transaction has no slot for this signature")
        except ValueError as e:
            raise SigningRejected(f"Could not sign transaction: {e}") from e

        signatures = list(transaction.signatures)
        signatures[index] = self.keypair.sign_message(to_bytes_versioned(transaction.message))
        signed = VersionedTransaction.populate(transaction.message, signatures)
        return encode_transaction(signed)
