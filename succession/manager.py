import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .account import Account, AccountRegistry
from .assets import AssetProvider, discover_balances
from .crypto import to_checksum_address
from .executor import AssetTransferExecutor
from .machine import ArmingStateMachine
from .verifier import authorization_message, message_hash, signing_digest

logger = logging.getLogger(__name__)


@dataclass
class Event:
    name: str
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'event': self.name, 'timestamp': self.timestamp, **self.data}


def _system_clock() -> int:
    return int(time.time())


class SuccessionManager:
    """
    Public surface of one custodial account.

    Every mutation runs under the account lock: the nonce, the arm state and
    the balances are read and written as one unit, and a failed call leaves
    all three untouched.
    """

    def __init__(self, account: Account, assets: AssetProvider,
                 clock: Optional[Callable[[], int]] = None):
        self.registry = AccountRegistry(account)
        self.machine = ArmingStateMachine(self.registry)
        self.executor = AssetTransferExecutor(assets)
        self.assets = assets
        self.clock = clock or _system_clock
        self._lock = threading.RLock()
        self._events: List[Event] = []

    @classmethod
    def initialize(cls, owner: str, heirs: Iterable[str], threshold: int, delay_seconds: int,
                   assets: AssetProvider, contract_id: Optional[str] = None,
                   clock: Optional[Callable[[], int]] = None) -> 'SuccessionManager':
        account = Account.create(owner, heirs, threshold, delay_seconds, contract_id)
        logger.info("Initialized account %s: owner %s, %d-of-%d heirs, delay %ss",
                    account.contract_id, account.owner, threshold, len(account.heirs), delay_seconds)
        return cls(account, assets, clock)

    @property
    def account(self) -> Account:
        return self.registry.account

    @property
    def contract_id(self) -> str:
        return self.account.contract_id

    @property
    def events(self) -> List[Event]:
        return self._events.copy()

    def _emit(self, name: str, **data: Any) -> Event:
        event = Event(name, self.clock(), data)
        self._events.append(event)
        return event

    def get_account_info(self) -> Dict[str, Any]:
        with self._lock:
            request = self.machine.request
            info = self.account.to_dict()
            info.update({
                'armed': self.machine.armed,
                'state': self.machine.state.value,
                'armed_destination': request.destination if request else None,
                'armed_at': request.armed_at if request else None,
                'unlock_at': self.machine.unlock_at(),
            })
            return info

    def authorization_message(self, destination: str) -> Dict[str, Any]:
        """What heirs must sign to authorize a release to `destination` now"""
        with self._lock:
            nonce = self.account.nonce.current()
            destination = to_checksum_address(destination)
            return {
                'contract_id': self.contract_id,
                'nonce': nonce,
                'destination': destination,
                'message': "0x" + authorization_message(self.contract_id, nonce, destination).hex(),
                'message_hash': "0x" + message_hash(self.contract_id, nonce, destination).hex(),
                'signing_digest': "0x" + signing_digest(self.contract_id, nonce, destination).hex(),
            }

    def arm(self, signatures: Sequence[Union[str, bytes]], destination: str,
            caller: Optional[str] = None, nonce: Optional[int] = None) -> Event:
        with self._lock:
            request = self.machine.arm(signatures, destination, self.clock(), nonce)
            return self._emit('Armed', destination=request.destination,
                              nonce=request.nonce, caller=caller)

    def cancel(self, caller: str) -> Event:
        with self._lock:
            new_nonce = self.machine.cancel(caller)
            return self._emit('Cancelled', caller=to_checksum_address(caller), nonce=new_nonce)

    def release(self, caller: str, tokens: Iterable[str] = ()) -> Event:
        """Heir- or owner-triggered transfer to the armed destination"""
        with self._lock:
            request = self.machine.authorize_release(caller, self.clock())
            report = self.executor.release(self.contract_id, request.destination, tokens)
            self.machine.complete_release()
            return self._emit('Transferred', caller=to_checksum_address(caller), **report.to_dict())

    def update_config(self, caller: str, heirs: Iterable[str], threshold: int,
                      delay_seconds: int) -> Event:
        with self._lock:
            account = self.registry.update_config(caller, heirs, threshold, delay_seconds,
                                                  armed=self.machine.armed)
            return self._emit('ConfigUpdated', heirs=list(account.heirs),
                              threshold=account.threshold, delay_seconds=account.delay_seconds)

    def emergency_transfer(self, caller: str, to: str, amount: int, tokens: Iterable[str] = (),
                           transfer_all_base: bool = False) -> Event:
        """Owner-only liquidity escape hatch, usable in any arm state"""
        with self._lock:
            self.registry.require_owner(caller, "transfer assets")
            report = self.executor.transfer_assets(self.contract_id, to, amount, tokens,
                                                   transfer_all_base)
            logger.info("Owner transfer from %s to %s", self.contract_id, report.destination)
            return self._emit('AssetsTransferred', **report.to_dict())

    def deposit(self, amount: int) -> Event:
        """Fund the account's base balance (providers that support deposits)"""
        with self._lock:
            balance = self.assets.deposit(self.contract_id, amount)
            return self._emit('Deposited', amount=amount, balance=balance)

    def balances(self, tokens: Iterable[str] = ()) -> Dict[str, Any]:
        with self._lock:
            entries = discover_balances(self.assets, self.contract_id, tokens)
            return {
                'base': self.assets.base_balance(self.contract_id),
                'tokens': [e.to_dict() for e in entries],
            }
