"""Validation utilities for Sivic.

This module provides utilities for validating Solana-specific data.
"""

import re

import base58

# Solana public key validation pattern (base58 format)
PUBKEY_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# Transaction signatures are 64 bytes, which base58-encode to 87 or 88 characters
SIGNATURE_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{87,88}$")


def validate_public_key(pubkey: str) -> bool:
    """Validate a Solana public key.

    Args:
        pubkey: The public key to validate

    Returns:
        True if the public key is valid, False otherwise
    """
    if not pubkey or not isinstance(pubkey, str):
        return False
    if not PUBKEY_PATTERN.match(pubkey):
        return False
    try:
        return len(base58.b58decode(pubkey)) == 32
    except ValueError:
        return False


def is_transaction_signature(value: str) -> bool:
    """Check whether a string looks like a base58 transaction signature.

    Only the character set and length are checked; the signature is not
    required to exist on chain.

    Args:
        value: Candidate signature (already trimmed)

    Returns:
        True if the value has the shape of a transaction signature
    """
    if not value or not isinstance(value, str):
        return False
    return bool(SIGNATURE_PATTERN.match(value))
