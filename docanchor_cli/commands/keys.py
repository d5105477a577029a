"""
CLI Key Commands

Usage:
    docanchor keys generate [--json]
"""

from __future__ import annotations

import json
from argparse import Namespace

from core.crypto.signatures import generate_keypair


EXIT_SUCCESS = 0


def keys_generate_cmd(args: Namespace) -> int:
    """Print a fresh issuer key pair. The private key is shown once."""
    pair = generate_keypair()
    if args.json:
        print(json.dumps({
            "private_key": pair.private_key,
            "public_key": pair.public_key,
            "address": pair.address,
        }, indent=2))
    else:
        print(f"address: {pair.address}")
        print(f"public_key: {pair.public_key}")
        print(f"private_key: {pair.private_key}")
        print("\nStore the private key securely (e.g. DOCANCHOR_ISSUER_PRIVATE_KEY).")
    return EXIT_SUCCESS
