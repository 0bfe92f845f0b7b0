"""
Succession Vault - quorum-authorized, time-locked release of custodied assets
"""

from .account import Account, AccountRegistry, NonceLedger, Role
from .assets import AssetProvider, InMemoryAssets, TokenBalanceEntry, TokenLedger
from .config import ServiceSettings, SuccessionConfig
from .executor import AssetTransferExecutor, TransferReport
from .keys import HeirKey
from .machine import ArmingStateMachine, ArmRequest, ArmState
from .manager import Event, SuccessionManager
from .verifier import SignatureVerifier, Verdict

__version__ = "0.1.0"
__all__ = [
    "Account",
    "AccountRegistry",
    "NonceLedger",
    "Role",
    "AssetProvider",
    "InMemoryAssets",
    "TokenBalanceEntry",
    "TokenLedger",
    "ServiceSettings",
    "SuccessionConfig",
    "AssetTransferExecutor",
    "TransferReport",
    "HeirKey",
    "ArmingStateMachine",
    "ArmRequest",
    "ArmState",
    "Event",
    "SuccessionManager",
    "SignatureVerifier",
    "Verdict",
]
