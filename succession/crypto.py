"""
secp256k1 / keccak utilities for heir identities and signatures
"""

from typing import Union

import eth_utils
from ecdsa import SECP256k1, VerifyingKey
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import SquareRootError
from ecdsa.util import MalformedSignature, sigdecode_string

from .errors import InvalidAddress

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"
ZERO_ADDRESS = "0x" + "00" * 20
SIGNATURE_LENGTH = 65

_ORDER = SECP256k1.order
_HALF_ORDER = _ORDER // 2


class RecoveryError(ValueError):
    """A signature that does not recover to a signer"""


def keccak256(data: bytes) -> bytes:
    """Ethereum keccak-256 (not NIST SHA3-256)"""
    return eth_utils.keccak(bytes(data))


def to_checksum_address(value: Union[str, bytes]) -> str:
    """Canonical (EIP-55 mixed-case) form of a 20-byte identity"""
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise InvalidAddress(f"Address must be 20 bytes, got {len(value)}")
        return eth_utils.to_checksum_address(bytes(value))

    if not isinstance(value, str):
        raise InvalidAddress(f"Invalid address type: {type(value).__name__}")

    text = "0x" + (value[2:] if value[:2] in ("0x", "0X") else value)
    if not eth_utils.is_hex_address(text):
        raise InvalidAddress(f"Invalid address: {value!r}")

    # Mixed-case input must carry a correct checksum
    digits = text[2:]
    if digits != digits.lower() and digits != digits.upper() and not eth_utils.is_checksum_address(text):
        raise InvalidAddress(f"Bad address checksum: {value!r}")

    return eth_utils.to_checksum_address(text)


def address_bytes(value: Union[str, bytes]) -> bytes:
    return bytes.fromhex(to_checksum_address(value)[2:])


def is_zero_address(value: Union[str, bytes]) -> bool:
    return address_bytes(value) == b"\x00" * 20


def public_key_to_address(verifying_key: VerifyingKey) -> str:
    """Address = last 20 bytes of keccak256(uncompressed point without prefix)"""
    return to_checksum_address(keccak256(verifying_key.to_string("raw"))[-20:])


def personal_message_digest(message_hash: bytes) -> bytes:
    """Digest actually signed by wallets for a 32-byte message hash"""
    if len(message_hash) != 32:
        raise ValueError("Personal messages here are 32-byte hashes")
    return keccak256(PERSONAL_MESSAGE_PREFIX + message_hash)


def signature_bytes(signature: Union[str, bytes]) -> bytes:
    """Accept raw bytes or 0x-prefixed hex"""
    if isinstance(signature, (bytes, bytearray)):
        return bytes(signature)
    if isinstance(signature, str):
        text = signature[2:] if signature[:2] in ("0x", "0X") else signature
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise RecoveryError("Signature is not valid hex") from None
    raise RecoveryError(f"Unsupported signature type: {type(signature).__name__}")


def recover_signer(digest: bytes, signature: Union[str, bytes]) -> str:
    """
    Recover the signing address from a 65-byte r || s || v signature.

    Pure function: raises RecoveryError for anything that cannot be
    attributed to exactly one signer (bad length, unknown v, r/s out of
    range, high-s malleable form, r not on the curve).
    """
    raw = signature_bytes(signature)
    if len(raw) != SIGNATURE_LENGTH:
        raise RecoveryError(f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}")

    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]

    if v in (27, 28):
        recovery_id = v - 27
    elif v in (0, 1):
        recovery_id = v
    else:
        raise RecoveryError(f"Invalid recovery byte v={v}")

    if not (0 < r < _ORDER):
        raise RecoveryError("Signature r out of range")
    if not (0 < s <= _HALF_ORDER):
        raise RecoveryError("Signature s out of range (high-s or zero)")

    try:
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            raw[:64], digest, curve=SECP256k1, sigdecode=sigdecode_string
        )
    except (SquareRootError, MalformedSignature, MalformedPointError, ValueError) as e:
        raise RecoveryError(f"Public key recovery failed: {e}") from e

    # Candidates come back ordered even-y first, matching recovery ids 0 and 1
    if recovery_id >= len(candidates):
        raise RecoveryError("No public key for recovery id")
    return public_key_to_address(candidates[recovery_id])
