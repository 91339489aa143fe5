from .config import Settings
from .engine import AccountResult, BatchResult, Outcome, Reconciler
from .errors import OperatorCancelled, PreconditionError, SetupError, WardenError
from .identity import Account, IdentitySource, Status
from .ledger import DeletionLog, LedgerStore
from .selection import Action, SelectionSet
from .sudoscan import fncScanPrivilegedGroups

__version__ = "1.0.0"

__all__ = [
    "Settings",
    "Reconciler",
    "BatchResult",
    "AccountResult",
    "Outcome",
    "WardenError",
    "PreconditionError",
    "SetupError",
    "OperatorCancelled",
    "Account",
    "IdentitySource",
    "Status",
    "LedgerStore",
    "DeletionLog",
    "Action",
    "SelectionSet",
    "fncScanPrivilegedGroups",
]
