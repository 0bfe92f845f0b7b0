import unittest

from succession.crypto import (
    ZERO_ADDRESS,
    RecoveryError,
    is_zero_address,
    keccak256,
    personal_message_digest,
    recover_signer,
    to_checksum_address,
)
from succession.errors import InvalidAddress
from succession.keys import HeirKey


class TestAddresses(unittest.TestCase):

    def test_keccak_empty_input(self):
        """keccak-256, not NIST SHA3"""
        self.assertEqual(
            keccak256(b"").hex(),
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470",
        )

    def test_checksum_address(self):
        checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
        self.assertEqual(to_checksum_address(checksummed.lower()), checksummed)
        self.assertEqual(to_checksum_address("0x" + checksummed[2:].upper()), checksummed)
        self.assertEqual(to_checksum_address(checksummed[2:]), checksummed)
        self.assertEqual(to_checksum_address(checksummed), checksummed)
        self.assertEqual(to_checksum_address(bytes.fromhex(checksummed[2:])), checksummed)

    def test_bad_checksum_rejected(self):
        with self.assertRaises(InvalidAddress):
            to_checksum_address("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAeD")

    def test_malformed_addresses(self):
        for value in ["", "0x1234", "0x" + "zz" * 20, b"\x00" * 19, 42]:
            with self.assertRaises(InvalidAddress):
                to_checksum_address(value)

    def test_zero_address(self):
        self.assertTrue(is_zero_address(ZERO_ADDRESS))
        self.assertFalse(is_zero_address("0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"))

    def test_known_key_address(self):
        key = HeirKey((1).to_bytes(32, "big"))
        self.assertEqual(key.address, "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf")

    def test_generate_key_pair(self):
        private_hex, address = HeirKey.generate_key_pair()
        self.assertEqual(HeirKey(bytes.fromhex(private_hex)).address, address)


class TestRecovery(unittest.TestCase):

    def setUp(self):
        self.key = HeirKey((7).to_bytes(32, "big"))
        self.message_hash = keccak256(b"authorize")
        self.digest = personal_message_digest(self.message_hash)

    def test_recovers_signer(self):
        signature = self.key.sign_message(self.message_hash)
        self.assertEqual(len(signature), 65)
        self.assertIn(signature[64], (27, 28))
        self.assertEqual(recover_signer(self.digest, signature), self.key.address)

    def test_accepts_hex_and_zero_based_v(self):
        signature = self.key.sign_message(self.message_hash)
        self.assertEqual(recover_signer(self.digest, "0x" + signature.hex()), self.key.address)

        zero_based = signature[:64] + bytes([signature[64] - 27])
        self.assertEqual(recover_signer(self.digest, zero_based), self.key.address)

    def test_other_message_recovers_other_signer(self):
        signature = self.key.sign_message(self.message_hash)
        other = personal_message_digest(keccak256(b"something else"))
        try:
            recovered = recover_signer(other, signature)
        except RecoveryError:
            return
        self.assertNotEqual(recovered, self.key.address)

    def test_malformed_signatures(self):
        signature = self.key.sign_message(self.message_hash)
        bad = [
            signature[:64],
            signature + b"\x00",
            signature[:64] + b"\x05",
            b"\x00" * 32 + signature[32:],
            "0xnothex",
            12345,
        ]
        for candidate in bad:
            with self.assertRaises(RecoveryError):
                recover_signer(self.digest, candidate)

    def test_high_s_rejected(self):
        from ecdsa import SECP256k1

        signature = self.key.sign_message(self.message_hash)
        s = int.from_bytes(signature[32:64], "big")
        flipped_v = 55 - signature[64]
        malleable = signature[:32] + (SECP256k1.order - s).to_bytes(32, "big") + bytes([flipped_v])
        with self.assertRaises(RecoveryError):
            recover_signer(self.digest, malleable)


class TestPublishedVector(unittest.TestCase):
    """Personal-message signature from the eth-account documentation"""

    PRIVATE_KEY = "b25c7db31feed9122727bf0939dc769a96564b2de4c4726d035b36ecf1e5b364"
    ADDRESS = "0x5ce9454909639D2D17A3F753ce7d93fa0b9aB12E"
    MESSAGE_DIGEST = "1476abb745d423bf09273f1afd887d951181d25adc66c4834a70491911b7f750"
    SIGNATURE = (
        "0xe6ca9bba58c88611fad66a6ce8f996908195593807c4b38bd528d2cff09d4eb3"
        "3e5bfbbf4d3e39b1a2fd816a7680c19ebebaf3a141b239934ad43cb33fcec8ce1c"
    )

    def test_digest(self):
        text = "I♥SF".encode("utf-8")
        digest = keccak256(b"\x19Ethereum Signed Message:\n" + str(len(text)).encode() + text)
        self.assertEqual(digest.hex(), self.MESSAGE_DIGEST)

    def test_address_derivation(self):
        self.assertEqual(HeirKey(bytes.fromhex(self.PRIVATE_KEY)).address, self.ADDRESS)

    def test_recovers_wallet_signature(self):
        digest = bytes.fromhex(self.MESSAGE_DIGEST)
        self.assertEqual(recover_signer(digest, self.SIGNATURE), self.ADDRESS)


if __name__ == '__main__':
    unittest.main()
