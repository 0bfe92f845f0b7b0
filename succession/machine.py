"""
Arm / cancel / release state machine

    IDLE --arm(quorum)--> ARMED --cancel(owner)--> IDLE   (nonce + 1)
                          ARMED --release(after delay)--> RELEASED -> IDLE   (nonce + 1)

RELEASED is the recorded outcome of the last completed cycle; a released
account accepts a fresh arm under the advanced nonce.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from .account import AccountRegistry, Role
from .crypto import is_zero_address, to_checksum_address
from .errors import (
    InvalidAddress,
    InvalidRecipient,
    InvalidState,
    LockNotElapsed,
    NotArmed,
    ReplayedNonce,
    Unauthorized,
)
from .verifier import SignatureVerifier, Verdict

logger = logging.getLogger(__name__)


class ArmState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    RELEASED = "released"


@dataclass(frozen=True)
class ArmRequest:
    destination: str
    armed_at: int
    nonce: int


class ArmingStateMachine:

    RELEASE_ROLES = frozenset({Role.OWNER, Role.HEIR})

    def __init__(self, registry: AccountRegistry, verifier: Optional[SignatureVerifier] = None):
        self.registry = registry
        self.verifier = verifier or SignatureVerifier()
        self.state = ArmState.IDLE
        self.request: Optional[ArmRequest] = None
        self.last_outcome: Optional[ArmState] = None

    @property
    def armed(self) -> bool:
        return self.state is ArmState.ARMED

    def unlock_at(self) -> Optional[int]:
        if self.request is None:
            return None
        return self.request.armed_at + self.registry.account.delay_seconds

    def arm(self, signatures: Sequence[Union[str, bytes]], destination: str, now: int,
            nonce: Optional[int] = None) -> ArmRequest:
        """Idle -> Armed when a quorum of distinct heirs signed the current nonce"""
        try:
            destination = to_checksum_address(destination)
        except InvalidAddress as e:
            raise InvalidRecipient(f"Invalid destination: {e}", destination=destination) from e
        if is_zero_address(destination):
            raise InvalidRecipient("Invalid destination: zero address", destination=destination)

        if self.armed:
            raise InvalidState("Already armed; cancel before arming again",
                               destination=self.request.destination)

        account = self.registry.account
        current = account.nonce.current()
        if nonce is not None and nonce != current:
            raise ReplayedNonce(current, nonce)

        verdict: Verdict = self.verifier.verify(
            signatures, account.contract_id, current, destination,
            account.heirs, account.threshold,
        )
        if not verdict.success:
            logger.warning("Arm rejected for %s: %d of %d signers, rejections %s",
                           account.contract_id, len(verdict.accepted), account.threshold,
                           verdict.reasons())
            verdict.raise_for_quorum()

        self.request = ArmRequest(destination=destination, armed_at=now, nonce=current)
        self.state = ArmState.ARMED
        logger.info("Account %s armed for %s at %d by %s",
                    account.contract_id, destination, now, ", ".join(verdict.accepted))
        return self.request

    def cancel(self, caller: str) -> int:
        """Armed -> Idle, invalidating signatures collected for the old nonce"""
        self.registry.require_owner(caller, "cancel")
        if not self.armed:
            raise NotArmed("Nothing to cancel: account is not armed")

        self.request = None
        self.state = ArmState.IDLE
        new_nonce = self.registry.nonce.advance()
        logger.info("Account %s disarmed; nonce now %d",
                    self.registry.account.contract_id, new_nonce)
        return new_nonce

    def authorize_release(self, caller: str, now: int) -> ArmRequest:
        """Check the release guards without changing state"""
        if not self.armed:
            raise NotArmed("Release requires an armed account")

        if self.registry.role_of(caller) not in self.RELEASE_ROLES:
            raise Unauthorized(caller, "trigger release")

        unlock_at = self.unlock_at()
        if now < unlock_at:
            raise LockNotElapsed(unlock_at, now)
        return self.request

    def complete_release(self) -> ArmRequest:
        """Armed -> Released -> Idle once the executor moved the funds"""
        if not self.armed:
            raise InvalidState("Release completed without an armed request")

        request = self.request
        self.state = ArmState.RELEASED
        self.last_outcome = ArmState.RELEASED
        self.request = None
        new_nonce = self.registry.nonce.advance()
        self.state = ArmState.IDLE

        logger.info("Account %s released to %s; nonce now %d",
                    self.registry.account.contract_id, request.destination, new_nonce)
        return request
