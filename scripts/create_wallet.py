#!/usr/bin/env python3
"""Create a new Solana wallet for the arbitrage bot"""

import json
import os

from solarb_relay.modules.signer import KeypairSigner


def create_new_wallet(path: str = 'wallet.json'):
    """Create a new Solana wallet"""
    print("🔑 Creating new Solana wallet...")

    signer = KeypairSigner.generate()
    wallet_data = {
        "secret_key": signer.secret_key_base58,
        "public_key": signer.address,
        "warning": "NEVER share this file or commit it to git!"
    }

    if os.path.exists(path):
        response = input(f"⚠️  {path} already exists. Overwrite? (y/N): ")
        if response.lower() != 'y':
            print("Aborted.")
            return

    with open(path, 'w') as f:
        json.dump(wallet_data, f, indent=2)

    # Unix-like systems only
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass

    print("\n✅ Wallet created successfully!")
    print(f"\n📍 Public Key (Wallet Address):")
    print(f"   {signer.address}")
    print("\n⚠️  IMPORTANT:")
    print(f"   1. Save your {path} file securely")
    print("   2. Never share your secret key")
    print("   3. Fund this wallet with SOL before running the bot")
    print("\n💰 Minimum recommended balance:")
    print("   - SOL: 0.6 SOL (0.5 SOL route notional plus fees)")


if __name__ == "__main__":
    create_new_wallet()
