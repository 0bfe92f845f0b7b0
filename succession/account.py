import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .crypto import keccak256, to_checksum_address
from .errors import (
    DuplicateHeir,
    InvalidAddress,
    InvalidDelay,
    InvalidState,
    InvalidThreshold,
    Unauthorized,
)

logger = logging.getLogger(__name__)


class Role(Enum):
    """Capabilities an identity can hold on an account"""
    OWNER = "owner"
    HEIR = "heir"


def normalize_heirs(heirs: Iterable[str]) -> List[str]:
    """Canonicalise heir identities, rejecting repeats"""
    normalized = []
    seen = set()
    for heir in heirs:
        address = to_checksum_address(heir)
        if address in seen:
            raise DuplicateHeir(f"Heir {address} listed more than once", heir=address)
        seen.add(address)
        normalized.append(address)
    return normalized


def validate_threshold(threshold: int, heir_count: int) -> None:
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidThreshold(threshold, heir_count)
    if not (1 <= threshold <= heir_count):
        raise InvalidThreshold(threshold, heir_count)


def validate_delay(delay_seconds: int) -> None:
    if isinstance(delay_seconds, bool) or not isinstance(delay_seconds, int) or delay_seconds < 0:
        raise InvalidDelay(f"Delay must be a non-negative number of seconds, got {delay_seconds!r}",
                           delay_seconds=delay_seconds)


@dataclass
class NonceLedger:
    """Monotonic counter scoping every authorization message"""
    value: int = 0

    def current(self) -> int:
        return self.value

    def advance(self) -> int:
        self.value += 1
        return self.value


@dataclass
class Account:
    """Custodial account configuration; the only state that persists"""
    owner: str
    heirs: List[str]
    threshold: int
    delay_seconds: int
    contract_id: str
    nonce: NonceLedger = field(default_factory=NonceLedger)

    @classmethod
    def create(cls, owner: str, heirs: Iterable[str], threshold: int, delay_seconds: int,
               contract_id: Optional[str] = None) -> 'Account':
        owner = to_checksum_address(owner)
        normalized = normalize_heirs(heirs)
        validate_threshold(threshold, len(normalized))
        validate_delay(delay_seconds)

        if contract_id is None:
            contract_id = cls._generate_contract_id(owner)
        else:
            contract_id = to_checksum_address(contract_id)

        return cls(owner, normalized, threshold, delay_seconds, contract_id)

    @staticmethod
    def _generate_contract_id(owner: str) -> str:
        """Derive a fresh 20-byte account identity from the owner and a salt"""
        seed = b"SUCCESSION_ACCOUNT_V1" + bytes.fromhex(owner[2:]) + secrets.token_bytes(32)
        return to_checksum_address(keccak256(seed)[-20:])

    def is_heir(self, identity: str) -> bool:
        return to_checksum_address(identity) in self.heirs

    def is_owner(self, identity: str) -> bool:
        return to_checksum_address(identity) == self.owner

    def to_dict(self) -> dict:
        return {
            'contract_id': self.contract_id,
            'owner': self.owner,
            'heirs': list(self.heirs),
            'threshold': self.threshold,
            'delay_seconds': self.delay_seconds,
            'nonce': self.nonce.current(),
        }


class AccountRegistry:
    """Owner-controlled view over an Account's heirs, threshold and delay"""

    def __init__(self, account: Account):
        self.account = account

    @property
    def nonce(self) -> NonceLedger:
        return self.account.nonce

    def role_of(self, identity: Optional[str]) -> Optional[Role]:
        """Role held by `identity`; None for strangers and malformed identities"""
        if identity is None:
            return None
        try:
            if self.account.is_owner(identity):
                return Role.OWNER
            if self.account.is_heir(identity):
                return Role.HEIR
        except InvalidAddress:
            return None
        return None

    def require_owner(self, caller: Optional[str], action: str) -> None:
        if self.role_of(caller) is not Role.OWNER:
            raise Unauthorized(caller, action)

    def update_config(self, caller: str, new_heirs: Iterable[str], new_threshold: int,
                      new_delay: int, armed: bool = False) -> Account:
        """Replace heirs, threshold and delay in one step; nonce untouched"""
        self.require_owner(caller, "update configuration")
        if armed:
            raise InvalidState("Cannot change heirs while armed; cancel first")

        normalized = normalize_heirs(new_heirs)
        validate_threshold(new_threshold, len(normalized))
        validate_delay(new_delay)

        self.account.heirs = normalized
        self.account.threshold = new_threshold
        self.account.delay_seconds = new_delay

        logger.info("Account %s reconfigured: %d-of-%d heirs, delay %ss",
                    self.account.contract_id, new_threshold, len(normalized), new_delay)
        return self.account
