#!/usr/bin/env python3
"""
Complete demo of the Succession Vault protocol
"""

import logging

from succession.assets import InMemoryAssets, discover_balances, token_list
from succession.config import ONE_DAY, SuccessionConfig
from succession.errors import InsufficientSignatures, LockNotElapsed, SuccessionError
from succession.keys import HeirKey
from succession.manager import SuccessionManager
from succession.verifier import message_hash


class DemoClock:
    def __init__(self, start: int):
        self.now = start

    def __call__(self) -> int:
        return self.now


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("SUCCESSION VAULT - COMPLETE DEMO")
    print("=" * 60)
    print()

    # Step 1: Setup
    print("STEP 1: Setting up owner and heirs")
    print("-" * 40)

    owner = HeirKey()
    heirs = {name: HeirKey() for name in ("Alice", "Bob", "Carol")}
    destination = HeirKey().address
    for name, key in heirs.items():
        print(f"  {name}: {key.address}")
    print(f"  Destination: {destination}")
    print()

    # Step 2: Create account
    print("STEP 2: Creating custodial account")
    print("-" * 40)

    config = SuccessionConfig.majority([k.address for k in heirs.values()], delay_seconds=ONE_DAY)
    ok, reason = config.validate()
    print(f"  Config: {config.threshold}-of-{len(config.heirs)}, {config.delay_seconds}s ({reason})")

    assets = InMemoryAssets()
    clock = DemoClock(1_700_000_000)
    manager = SuccessionManager.initialize(
        owner.address, config.heirs, config.threshold, config.delay_seconds, assets, clock=clock
    )
    manager.deposit(10 * 10 ** 18)
    usdc = assets.deploy_token("USD Coin", "USDC", 6)
    dai = assets.deploy_token("Dai", "DAI", 18)
    usdc.mint(manager.contract_id, 2_500_000_000)

    for entry in discover_balances(assets, manager.contract_id, [usdc.address, dai.address]):
        print(f"  Holding {entry.amount} {entry.symbol}")
    print()

    # Step 3: Arm
    print("STEP 3: Heirs sign and arm the release")
    print("-" * 40)

    nonce = manager.account.nonce.current()
    digest = message_hash(manager.contract_id, nonce, destination)

    try:
        manager.arm([heirs["Alice"].sign_message(digest)] * 2, destination)
        print("  UNEXPECTED: duplicate signer armed the account")
    except InsufficientSignatures as e:
        print(f"  EXPECTED FAILURE ({e.tag}): {e}")

    signatures = [heirs["Alice"].sign_message(digest), heirs["Bob"].sign_message(digest)]
    manager.arm(signatures, destination)
    print(f"  Armed: {manager.get_account_info()['armed_destination']}")
    print()

    # Step 4: Release
    print("STEP 4: Releasing after the lock-in period")
    print("-" * 40)

    clock.now += ONE_DAY - 1
    try:
        manager.release(heirs["Carol"].address, [usdc.address])
    except LockNotElapsed as e:
        print(f"  EXPECTED FAILURE ({e.tag}): {e}")

    clock.now += 2
    tokens = token_list(discover_balances(assets, manager.contract_id, [usdc.address, dai.address]))
    try:
        event = manager.release(heirs["Carol"].address, tokens)
    except SuccessionError as e:
        print(f"  FAILED: {e}")
        return

    print(f"  Released {event.data['base_amount']:,} wei and {len(event.data['tokens'])} token(s)")
    print(f"  Destination USDC balance: {usdc.balance_of(destination):,}")
    print(f"  Account state: {manager.get_account_info()['state']}, nonce {manager.account.nonce.current()}")
    print()

    print("Events:")
    for e in manager.events:
        print(f"  {e.name}: {e.data}")


if __name__ == "__main__":
    main()
