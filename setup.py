#!/usr/bin/env python3
"""Setup script for the arbitrage relay"""

from setuptools import setup, find_packages

setup(
    name="solarb-relay",
    version="1.0.0",
    author="Your Name",
    description="Solana three-hop arbitrage relay and auto-trading bot",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#")
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "solarb-relay=solarb_relay.server:main",
            "solarb-bot=solarb_relay.bot:main",
        ],
    },
)
