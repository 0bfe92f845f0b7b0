"""
Quorum verification of heir signatures over (contract_id, nonce, destination)
"""

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .crypto import (
    RecoveryError,
    address_bytes,
    keccak256,
    personal_message_digest,
    recover_signer,
    to_checksum_address,
)
from .errors import DuplicateSignature, InsufficientSignatures, InvalidSignature

logger = logging.getLogger(__name__)

UNRECOVERABLE = "unrecoverable"
NOT_HEIR = "not_heir"
DUPLICATE = "duplicate"


def authorization_message(contract_id: str, nonce: int, destination: str) -> bytes:
    """Packed address(20) || uint256(32, big-endian) || address(20)"""
    if nonce < 0 or nonce >= 2 ** 256:
        raise ValueError(f"Nonce out of uint256 range: {nonce}")
    return address_bytes(contract_id) + nonce.to_bytes(32, "big") + address_bytes(destination)


def message_hash(contract_id: str, nonce: int, destination: str) -> bytes:
    return keccak256(authorization_message(contract_id, nonce, destination))


def signing_digest(contract_id: str, nonce: int, destination: str) -> bytes:
    """The digest a heir's wallet signs (personal-message convention)"""
    return personal_message_digest(message_hash(contract_id, nonce, destination))


@dataclass
class Rejection:
    index: int
    reason: str
    signer: Optional[str] = None

    def to_dict(self) -> dict:
        return {'index': self.index, 'reason': self.reason, 'signer': self.signer}


@dataclass
class Verdict:
    accepted: List[str] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)
    threshold: int = 0

    @property
    def success(self) -> bool:
        return len(self.accepted) >= self.threshold

    def reasons(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for rejection in self.rejected:
            counts[rejection.reason] = counts.get(rejection.reason, 0) + 1
        return counts

    def raise_for_quorum(self) -> None:
        """Raise the most specific taxonomy error for a failed verdict"""
        if self.success:
            return

        found = len(self.accepted)
        rejected = [r.to_dict() for r in self.rejected]
        reasons = self.reasons()

        if reasons.get(UNRECOVERABLE) or reasons.get(NOT_HEIR):
            raise InvalidSignature(found, self.threshold, rejected)
        if reasons.get(DUPLICATE):
            raise DuplicateSignature(found, self.threshold, rejected)
        raise InsufficientSignatures(found, self.threshold, rejected)


class SignatureVerifier:
    """Sifts a batch of candidate signatures down to a quorum of distinct heirs"""

    def verify(self, signatures: Sequence[Union[str, bytes]], contract_id: str, nonce: int,
               destination: str, heirs: Iterable[str], threshold: int) -> Verdict:
        digest = signing_digest(contract_id, nonce, destination)
        heir_set = {to_checksum_address(h) for h in heirs}

        def fold(verdict: Verdict, item) -> Verdict:
            index, signature = item
            try:
                signer = recover_signer(digest, signature)
            except RecoveryError as e:
                logger.debug("Signature %d discarded: %s", index, e)
                verdict.rejected.append(Rejection(index, UNRECOVERABLE))
                return verdict

            if signer not in heir_set:
                logger.debug("Signature %d discarded: %s is not an heir", index, signer)
                verdict.rejected.append(Rejection(index, NOT_HEIR, signer))
            elif signer in verdict.accepted:
                logger.debug("Signature %d discarded: %s already counted", index, signer)
                verdict.rejected.append(Rejection(index, DUPLICATE, signer))
            else:
                verdict.accepted.append(signer)
            return verdict

        return reduce(fold, enumerate(signatures), Verdict(threshold=threshold))
