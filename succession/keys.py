"""
Local secp256k1 signer for heirs and owners
"""

import hashlib
from typing import Tuple

from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from .crypto import personal_message_digest, public_key_to_address


class HeirKey:
    """Key pair able to sign authorization messages the way wallets do"""

    def __init__(self, private_key: bytes = None):
        if private_key:
            self.private_key = SigningKey.from_string(private_key, curve=SECP256k1)
        else:
            self.private_key = SigningKey.generate(curve=SECP256k1)

        self.public_key = self.private_key.get_verifying_key()
        self.address = public_key_to_address(self.public_key)

    def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest, returning 65-byte r || s || v (low-s)"""
        rs = self.private_key.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize
        )
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            rs, digest, curve=SECP256k1, sigdecode=sigdecode_string
        )
        mine = self.public_key.to_string("raw")
        for recovery_id, candidate in enumerate(candidates):
            if candidate.to_string("raw") == mine:
                return rs + bytes([27 + recovery_id])
        raise ValueError("Could not determine recovery id for signature")

    def sign_message(self, message_hash: bytes) -> bytes:
        """Personal-message signature over a 32-byte message hash"""
        return self.sign_digest(personal_message_digest(message_hash))

    @staticmethod
    def generate_key_pair() -> Tuple[str, str]:
        """Generate new key pair and return (private_key_hex, address)"""
        key = HeirKey()
        return key.private_key.to_string().hex(), key.address
