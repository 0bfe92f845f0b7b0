from succession.assets import InMemoryAssets
from succession.keys import HeirKey
from succession.verifier import message_hash

DAY = 86400
START = 1_700_000_000


def make_keys(count, offset=1):
    """Deterministic keys so failures are reproducible"""
    return [HeirKey((offset + i).to_bytes(32, "big")) for i in range(count)]


def sign_all(keys, contract_id, nonce, destination):
    digest = message_hash(contract_id, nonce, destination)
    return [k.sign_message(digest) for k in keys]


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FailingAssets(InMemoryAssets):
    """Provider whose transfers of the listed tokens always fail"""

    def __init__(self):
        super().__init__()
        self.failing_tokens = set()

    def transfer_token(self, token, holder, to, amount):
        if token in self.failing_tokens:
            raise RuntimeError(f"transfer of {token} refused by provider")
        super().transfer_token(token, holder, to, amount)
