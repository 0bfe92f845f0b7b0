import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .assets import AssetProvider
from .crypto import is_zero_address, to_checksum_address
from .errors import InsufficientETH, InvalidAmount, InvalidRecipient, InvalidAddress

logger = logging.getLogger(__name__)


@dataclass
class TransferReport:
    """What actually moved during a release or emergency transfer"""
    destination: str
    base_amount: int = 0
    tokens: List[Tuple[str, int]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'destination': self.destination,
            'base_amount': self.base_amount,
            'tokens': [{'token': t, 'amount': a} for t, a in self.tokens],
            'skipped': list(self.skipped),
        }


def _recipient(to: str) -> str:
    if not to:
        raise InvalidRecipient("Invalid recipient: empty address")
    try:
        address = to_checksum_address(to)
    except InvalidAddress as e:
        raise InvalidRecipient(f"Invalid recipient: {e}", recipient=to) from e
    if is_zero_address(address):
        raise InvalidRecipient("Invalid recipient: zero address", recipient=address)
    return address


def _unique_tokens(tokens: Iterable[str]) -> List[str]:
    ordered = []
    for token in tokens:
        address = to_checksum_address(token)
        if address not in ordered:
            ordered.append(address)
    return ordered


class AssetTransferExecutor:
    """Moves custodied balances out of a holder account"""

    def __init__(self, provider: AssetProvider):
        self.provider = provider

    def release(self, holder: str, destination: str, tokens: Iterable[str]) -> TransferReport:
        """Move the full base balance and every listed token balance"""
        return self._move(holder, _recipient(destination), None, tokens, transfer_all_base=True)

    def transfer_assets(self, holder: str, to: str, amount: int, tokens: Iterable[str],
                        transfer_all_base: bool) -> TransferReport:
        """Owner-directed transfer, independent of arm state"""
        to = _recipient(to)
        if not transfer_all_base:
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise InvalidAmount(f"Invalid amount: {amount!r}", amount=amount)
            available = self.provider.base_balance(holder)
            if amount > available:
                raise InsufficientETH(amount, available)
        return self._move(holder, to, amount, tokens, transfer_all_base)

    def _move(self, holder: str, to: str, amount, tokens: Iterable[str],
              transfer_all_base: bool) -> TransferReport:
        """Apply the whole batch or, if any transfer fails, none of it"""
        report = TransferReport(destination=to)

        base = self.provider.base_balance(holder) if transfer_all_base else amount
        report.base_amount = base if base > 0 else 0

        for token in _unique_tokens(tokens):
            balance = self.provider.token_balance(token, holder)
            if balance == 0:
                logger.debug("Skipping %s: zero balance", token)
                report.skipped.append(token)
            else:
                report.tokens.append((token, balance))

        done = []
        try:
            if report.base_amount:
                self.provider.transfer_base(holder, to, report.base_amount)
                done.append((None, report.base_amount))
            for token, balance in report.tokens:
                self.provider.transfer_token(token, holder, to, balance)
                done.append((token, balance))
        except Exception:
            logger.error("Transfer from %s to %s failed after %d of %d steps; rolling back",
                         holder, to, len(done), len(report.tokens) + bool(report.base_amount))
            self._undo(holder, to, done)
            raise

        logger.info("Moved %d base units and %d tokens from %s to %s",
                    report.base_amount, len(report.tokens), holder, to)
        return report

    def _undo(self, holder: str, to: str, done: List[Tuple[Optional[str], int]]) -> None:
        for token, amount in reversed(done):
            if token is None:
                self.provider.transfer_base(to, holder, amount)
            else:
                self.provider.transfer_token(token, to, holder, amount)
