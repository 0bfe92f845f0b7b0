"""
Balance and transfer providers for the base currency and tokens

The executor only ever talks to an AssetProvider; InMemoryAssets is the
reference provider used by the service, the demo and the tests.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .crypto import keccak256, to_checksum_address
from .errors import InsufficientETH, InvalidAmount

logger = logging.getLogger(__name__)


@dataclass
class TokenMetadata:
    name: str
    symbol: str
    decimals: int


@dataclass
class TokenBalanceEntry:
    """Discovered token holding; drives the release token list only"""
    token: str
    symbol: str
    decimals: int
    raw_amount: int

    @property
    def amount(self) -> Decimal:
        return Decimal(self.raw_amount).scaleb(-self.decimals)

    def to_dict(self) -> dict:
        return {
            'token': self.token,
            'symbol': self.symbol,
            'decimals': self.decimals,
            'raw_amount': self.raw_amount,
            'amount': str(self.amount),
        }


class AssetProvider(Protocol):
    """What the transfer executor needs from the custody backend"""

    def base_balance(self, holder: str) -> int: ...

    def transfer_base(self, holder: str, to: str, amount: int) -> None: ...

    def token_balance(self, token: str, holder: str) -> int: ...

    def transfer_token(self, token: str, holder: str, to: str, amount: int) -> None: ...

    def token_metadata(self, token: str) -> TokenMetadata: ...


class TokenLedger:
    """Fungible token with per-holder balances"""

    def __init__(self, address: str, metadata: TokenMetadata):
        self.address = to_checksum_address(address)
        self.metadata = metadata
        self._balances: Dict[str, int] = {}
        self._transfer_history: List[Dict[str, Any]] = []

    def balance_of(self, holder: str) -> int:
        return self._balances.get(to_checksum_address(holder), 0)

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"Cannot mint negative amount {amount}")
        to = to_checksum_address(to)
        self._balances[to] = self.balance_of(to) + amount

    def transfer(self, from_holder: str, to_holder: str, amount: int) -> bool:
        """Move tokens between holders; False when the balance is short"""
        if amount <= 0:
            return False

        from_holder = to_checksum_address(from_holder)
        to_holder = to_checksum_address(to_holder)

        from_balance = self.balance_of(from_holder)
        if from_balance < amount:
            return False

        self._balances[from_holder] = from_balance - amount
        self._balances[to_holder] = self.balance_of(to_holder) + amount

        self._transfer_history.append({
            'from': from_holder,
            'to': to_holder,
            'amount': amount,
        })
        return True

    def get_transfer_history(self) -> List[Dict[str, Any]]:
        return self._transfer_history.copy()


class InMemoryAssets:
    """Reference AssetProvider keeping base balances and tokens in memory"""

    def __init__(self):
        self._base: Dict[str, int] = {}
        self._tokens: Dict[str, TokenLedger] = {}
        self._token_counter = 0

    def deploy_token(self, name: str, symbol: str, decimals: int = 18) -> TokenLedger:
        self._token_counter += 1
        address = keccak256(f"TOKEN_{self._token_counter}_{symbol}".encode())[-20:]
        token = TokenLedger(address, TokenMetadata(name, symbol, decimals))
        self._tokens[token.address] = token
        return token

    def token(self, token: str) -> TokenLedger:
        address = to_checksum_address(token)
        if address not in self._tokens:
            raise KeyError(f"Unknown token {address}")
        return self._tokens[address]

    def deposit(self, holder: str, amount: int) -> int:
        if amount < 0:
            raise InvalidAmount(f"Cannot deposit negative amount {amount}")
        holder = to_checksum_address(holder)
        self._base[holder] = self._base.get(holder, 0) + amount
        logger.debug("Deposited %d to %s", amount, holder)
        return self._base[holder]

    def base_balance(self, holder: str) -> int:
        return self._base.get(to_checksum_address(holder), 0)

    def transfer_base(self, holder: str, to: str, amount: int) -> None:
        balance = self.base_balance(holder)
        if amount > balance:
            raise InsufficientETH(amount, balance)
        holder = to_checksum_address(holder)
        to = to_checksum_address(to)
        self._base[holder] = balance - amount
        self._base[to] = self._base.get(to, 0) + amount

    def token_balance(self, token: str, holder: str) -> int:
        address = to_checksum_address(token)
        if address not in self._tokens:
            return 0
        return self._tokens[address].balance_of(holder)

    def transfer_token(self, token: str, holder: str, to: str, amount: int) -> None:
        if not self.token(token).transfer(holder, to, amount):
            raise InvalidAmount(f"Token transfer of {amount} from {holder} failed", token=token)

    def token_metadata(self, token: str) -> TokenMetadata:
        return self.token(token).metadata


def discover_balances(provider: AssetProvider, holder: str,
                      tokens: Iterable[str]) -> List[TokenBalanceEntry]:
    """Non-empty token holdings among a candidate list, in input order"""
    entries = []
    seen = set()
    for token in tokens:
        address = to_checksum_address(token)
        if address in seen:
            continue
        seen.add(address)

        raw = provider.token_balance(address, holder)
        if raw == 0:
            continue
        metadata = provider.token_metadata(address)
        entries.append(TokenBalanceEntry(address, metadata.symbol, metadata.decimals, raw))
    return entries


def token_list(entries: Iterable[TokenBalanceEntry], symbols: Optional[Iterable[str]] = None) -> List[str]:
    """Executor input from discovered entries, optionally filtered by symbol"""
    wanted = set(symbols) if symbols is not None else None
    return [e.token for e in entries if wanted is None or e.symbol in wanted]
