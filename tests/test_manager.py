import threading
import unittest

from succession.assets import InMemoryAssets
from succession.errors import (
    InsufficientSignatures,
    InvalidState,
    InvalidThreshold,
    LockNotElapsed,
    Unauthorized,
)
from succession.manager import SuccessionManager
from tests.helpers import DAY, START, FailingAssets, FakeClock, make_keys, sign_all

ETHER = 10 ** 18


class TestSuccessionScenarios(unittest.TestCase):
    """heirs = [A, B, C], threshold = 2, delay = one day"""

    def setUp(self):
        keys = make_keys(6)
        self.owner = keys[0].address
        self.a, self.b, self.c = keys[1:4]
        self.outsider = keys[4].address
        self.destination = keys[5].address

        self.clock = FakeClock()
        self.assets = InMemoryAssets()
        self.manager = SuccessionManager.initialize(
            self.owner, [self.a.address, self.b.address, self.c.address], 2, DAY,
            self.assets, clock=self.clock,
        )
        self.manager.deposit(ETHER)
        self.token = self.assets.deploy_token("TestToken", "TTK", 0)
        self.token.mint(self.manager.contract_id, 500)

    def sign(self, *keys):
        return sign_all(keys, self.manager.contract_id,
                        self.manager.account.nonce.current(), self.destination)

    def test_arm_then_release_after_delay(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        info = self.manager.get_account_info()
        self.assertTrue(info['armed'])
        self.assertEqual(info['armed_destination'], self.destination)
        self.assertEqual(info['unlock_at'], START + DAY)

        self.clock.advance(DAY - 1)
        with self.assertRaises(LockNotElapsed):
            self.manager.release(self.c.address, [self.token.address])
        self.assertEqual(self.assets.base_balance(self.manager.contract_id), ETHER)

        self.clock.advance(2)
        event = self.manager.release(self.c.address, [self.token.address])

        self.assertEqual(event.name, 'Transferred')
        self.assertEqual(event.data['destination'], self.destination)
        self.assertEqual(self.assets.base_balance(self.destination), ETHER)
        self.assertEqual(self.assets.base_balance(self.manager.contract_id), 0)
        self.assertEqual(self.token.balance_of(self.destination), 500)

        info = self.manager.get_account_info()
        self.assertFalse(info['armed'])
        self.assertEqual(info['state'], 'idle')
        self.assertEqual(info['nonce'], 1)

    def test_same_signer_twice_is_one_signer(self):
        signature = self.sign(self.a)[0]
        with self.assertRaises(InsufficientSignatures) as ctx:
            self.manager.arm([signature, signature], self.destination)
        self.assertEqual(ctx.exception.found, 1)
        self.assertEqual(ctx.exception.needed, 2)
        self.assertFalse(self.manager.get_account_info()['armed'])

    def test_cancel_then_resubmit_old_signatures(self):
        signatures = self.sign(self.a, self.b)
        self.manager.arm(signatures, self.destination, caller=self.owner)
        self.manager.cancel(self.owner)
        self.assertEqual(self.manager.account.nonce.current(), 1)

        with self.assertRaises(InsufficientSignatures):
            self.manager.arm(signatures, self.destination)
        self.assertEqual(self.manager.account.nonce.current(), 1)

    def test_any_caller_may_submit_arm(self):
        event = self.manager.arm(self.sign(self.a, self.b), self.destination, caller=self.outsider)
        self.assertEqual(event.data['caller'], self.outsider)

    def test_outsider_cannot_release(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        self.clock.advance(DAY + 1)
        with self.assertRaises(Unauthorized):
            self.manager.release(self.outsider, [])
        self.manager.release(self.owner, [])
        self.assertEqual(self.assets.base_balance(self.destination), ETHER)

    def test_rearm_after_release(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        self.clock.advance(DAY)
        self.manager.release(self.a.address, [])

        self.manager.deposit(ETHER)
        self.manager.arm(self.sign(self.b, self.c), self.destination)
        self.assertTrue(self.manager.get_account_info()['armed'])

    def test_update_config_rejected_while_armed(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        with self.assertRaises(InvalidState):
            self.manager.update_config(self.owner, [self.a.address], 1, DAY)

    def test_update_config_then_single_signer_arm(self):
        self.manager.update_config(self.owner, [self.a.address, self.c.address], 1, DAY)
        self.manager.arm(self.sign(self.a), self.destination)
        self.assertTrue(self.manager.get_account_info()['armed'])

    def test_failed_update_keeps_previous_config(self):
        with self.assertRaises(InvalidThreshold):
            self.manager.update_config(self.owner, [self.a.address, self.c.address], 3, DAY)
        info = self.manager.get_account_info()
        self.assertEqual(info['threshold'], 2)
        self.assertEqual(len(info['heirs']), 3)

    def test_emergency_transfer_is_owner_only(self):
        with self.assertRaises(Unauthorized):
            self.manager.emergency_transfer(self.a.address, self.a.address, 0, [], True)

        self.manager.arm(self.sign(self.a, self.b), self.destination)
        event = self.manager.emergency_transfer(self.owner, self.outsider, ETHER // 2,
                                                [self.token.address], False)
        self.assertEqual(event.name, 'AssetsTransferred')
        self.assertEqual(self.assets.base_balance(self.outsider), ETHER // 2)
        self.assertEqual(self.token.balance_of(self.outsider), 500)
        self.assertTrue(self.manager.get_account_info()['armed'])

    def test_authorization_message(self):
        message = self.manager.authorization_message(self.destination.lower())
        self.assertEqual(message['nonce'], 0)
        self.assertEqual(message['destination'], self.destination)
        self.assertEqual(len(bytes.fromhex(message['message'][2:])), 72)

        digest = bytes.fromhex(message['message_hash'][2:])
        signatures = [self.a.sign_message(digest), self.b.sign_message(digest)]
        self.manager.arm(signatures, self.destination)

    def test_events_and_balances(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        self.manager.cancel(self.owner)

        names = [e.name for e in self.manager.events]
        self.assertEqual(names, ['Deposited', 'Armed', 'Cancelled'])

        balances = self.manager.balances([self.token.address])
        self.assertEqual(balances['base'], ETHER)
        self.assertEqual(balances['tokens'][0]['raw_amount'], 500)

    def test_concurrent_arms_yield_one_armed_request(self):
        signatures = self.sign(self.a, self.b)
        outcomes = []

        def attempt():
            try:
                self.manager.arm(signatures, self.destination)
                outcomes.append('armed')
            except InvalidState:
                outcomes.append('rejected')

        threads = [threading.Thread(target=attempt) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count('armed'), 1)
        self.assertEqual(outcomes.count('rejected'), 3)

    def test_malformed_caller_is_unauthorized(self):
        self.manager.arm(self.sign(self.a, self.b), self.destination)
        self.clock.advance(DAY)
        for caller in ("bob", "", "0x1234"):
            with self.assertRaises(Unauthorized):
                self.manager.cancel(caller)
            with self.assertRaises(Unauthorized):
                self.manager.release(caller, [])
            with self.assertRaises(Unauthorized):
                self.manager.emergency_transfer(caller, self.outsider, 0, [], True)
        self.assertTrue(self.manager.get_account_info()['armed'])


class TestFailedRelease(unittest.TestCase):

    def setUp(self):
        keys = make_keys(5)
        self.owner = keys[0].address
        self.a, self.b = keys[1:3]
        self.destination = keys[3].address

        self.clock = FakeClock()
        self.assets = FailingAssets()
        self.manager = SuccessionManager.initialize(
            self.owner, [self.a.address, self.b.address], 2, DAY, self.assets, clock=self.clock,
        )
        self.manager.deposit(1000)
        self.token = self.assets.deploy_token("TestToken", "TTK", 0)
        self.token.mint(self.manager.contract_id, 500)

        signatures = sign_all([self.a, self.b], self.manager.contract_id, 0, self.destination)
        self.manager.arm(signatures, self.destination)
        self.clock.advance(DAY)

    def test_provider_failure_leaves_account_unchanged(self):
        self.assets.failing_tokens.add(self.token.address)
        with self.assertRaises(RuntimeError):
            self.manager.release(self.a.address, [self.token.address])

        self.assertEqual(self.assets.base_balance(self.manager.contract_id), 1000)
        self.assertEqual(self.assets.base_balance(self.destination), 0)
        self.assertEqual(self.token.balance_of(self.manager.contract_id), 500)
        info = self.manager.get_account_info()
        self.assertTrue(info['armed'])
        self.assertEqual(info['nonce'], 0)
        self.assertNotIn('Transferred', [e.name for e in self.manager.events])

        self.assets.failing_tokens.clear()
        self.manager.release(self.a.address, [self.token.address])
        self.assertEqual(self.assets.base_balance(self.destination), 1000)
        self.assertEqual(self.token.balance_of(self.destination), 500)
        self.assertEqual(self.manager.get_account_info()['nonce'], 1)


class TestInitialize(unittest.TestCase):

    def test_invalid_threshold(self):
        owner, *heirs = [k.address for k in make_keys(4)]
        with self.assertRaises(InvalidThreshold):
            SuccessionManager.initialize(owner, heirs, 4, DAY, InMemoryAssets())
        with self.assertRaises(InvalidThreshold):
            SuccessionManager.initialize(owner, [], 2, DAY, InMemoryAssets())


if __name__ == '__main__':
    unittest.main()
