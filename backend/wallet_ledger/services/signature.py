"""Ed25519 wallet signature verification.

Solana wallet addresses are base58-encoded Ed25519 public keys, and wallets
sign arbitrary messages as detached signatures, so proving ownership of an
address is a single verify call.
"""
from __future__ import annotations
import logging
from typing import Union

import base58
from nacl.exceptions import CryptoError
from nacl.signing import VerifyKey

logger = logging.getLogger(__name__)


def verify_signature(message: Union[str, bytes], signature: str, public_key: str) -> bool:
    """Check a base58 detached signature over ``message`` against a base58 public key.

    Returns False for anything that is not a valid signature, including
    undecodable input and keys of the wrong length. Never raises.
    """
    if not isinstance(signature, str) or not isinstance(public_key, str):
        return False
    try:
        message_bytes = message.encode("utf-8") if isinstance(message, str) else bytes(message)
        signature_bytes = base58.b58decode(signature)
        verify_key = VerifyKey(base58.b58decode(public_key))
        verify_key.verify(message_bytes, signature_bytes)
        return True
    except (CryptoError, ValueError, TypeError) as e:
        logger.debug(f"Signature rejected for {public_key!r}: {e}")
        return False
