"""
Error taxonomy for the succession protocol.

Every error is raised per call and leaves account state untouched; callers
may retry with corrected input. The ``tag`` attribute is the stable name used
by the web service when it reports failures.
"""

from typing import Any, Dict, List, Optional


class SuccessionError(ValueError):
    """Base class for all protocol failures"""

    tag = "SuccessionError"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self._context = context

    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def to_dict(self) -> Dict[str, Any]:
        data = {'error': self.tag, 'message': self.message}
        data.update(self.context())
        return data


class InvalidThreshold(SuccessionError):
    tag = "InvalidThreshold"

    def __init__(self, threshold: int, heir_count: int):
        super().__init__(
            f"Invalid threshold: {threshold} not in [1, {heir_count}]",
            threshold=threshold,
            heir_count=heir_count,
        )
        self.threshold = threshold
        self.heir_count = heir_count


class InvalidDelay(SuccessionError):
    tag = "InvalidDelay"


class InvalidAddress(SuccessionError):
    tag = "InvalidAddress"


class DuplicateHeir(SuccessionError):
    tag = "DuplicateHeir"


class InvalidRecipient(SuccessionError):
    tag = "InvalidRecipient"


class InvalidAmount(SuccessionError):
    tag = "InvalidAmount"


class InsufficientSignatures(SuccessionError):
    """Quorum of distinct heir signatures not reached"""

    tag = "InsufficientSignatures"

    def __init__(self, found: int, needed: int, rejected: Optional[List[Dict[str, Any]]] = None,
                 message: Optional[str] = None):
        super().__init__(
            message or f"Insufficient valid signatures: found {found}, need {needed}",
            found=found,
            needed=needed,
            rejected=list(rejected or []),
        )
        self.found = found
        self.needed = needed
        self.rejected = list(rejected or [])


class InvalidSignature(InsufficientSignatures):
    """Quorum failed and at least one signature was unrecoverable or foreign"""

    tag = "InvalidSignature"

    def __init__(self, found: int, needed: int, rejected: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            found, needed, rejected,
            message=f"Invalid signature: only {found} of {needed} required heir signatures validated",
        )


class DuplicateSignature(InsufficientSignatures):
    """Quorum failed because the same heir signed more than once"""

    tag = "DuplicateSignature"

    def __init__(self, found: int, needed: int, rejected: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            found, needed, rejected,
            message=f"Duplicate signature: {found} distinct signers, need {needed}",
        )


class InsufficientETH(SuccessionError):
    tag = "InsufficientETH"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"Insufficient ETH: requested {requested}, available {available}",
            requested=requested,
            available=available,
        )
        self.requested = requested
        self.available = available


class LockNotElapsed(SuccessionError):
    tag = "LockNotElapsed"

    def __init__(self, unlock_at: int, now: int):
        super().__init__(
            f"Lock-in period not elapsed: {unlock_at - now}s remaining",
            unlock_at=unlock_at,
            now=now,
        )
        self.unlock_at = unlock_at
        self.now = now


class Unauthorized(SuccessionError):
    tag = "Unauthorized"

    def __init__(self, caller: Optional[str], action: str):
        super().__init__(f"{caller} is not allowed to {action}", caller=caller, action=action)
        self.caller = caller
        self.action = action


class ReplayedNonce(SuccessionError):
    tag = "ReplayedNonce"

    def __init__(self, expected: int, given: int):
        super().__init__(
            f"Stale nonce: signatures were collected for {given}, current nonce is {expected}",
            expected=expected,
            given=given,
        )
        self.expected = expected
        self.given = given


class NotArmed(SuccessionError):
    tag = "NotArmed"


class InvalidState(SuccessionError):
    tag = "InvalidState"


class MissingField(SuccessionError):
    tag = "MissingField"

    def __init__(self, field: str):
        super().__init__(f"Missing field '{field}'", field=field)
        self.field = field
