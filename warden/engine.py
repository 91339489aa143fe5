# Account lifecycle reconciliation engine.
#
# Two sources of truth: the live lock status reported by the identity
# source, and the ledger of accounts this tool disabled. Every batch starts
# with a reconciliation pass that drops ledger entries for accounts that are
# no longer locked; only then are keep/act-on decisions made and
# transitions applied. Transitions are applied one account at a time, a
# failure on one account is recorded and the batch moves on, and nothing is
# rolled back.
#
#   DISABLED (ledger) + live ACTIVE --reconcile--> ACTIVE   (ledger entry dropped)
#   ACTIVE   --disable-->  DISABLED  (lock, expire, ledger add, home removed)
#   ACTIVE/DISABLED --delete--> DELETED (userdel -r, deletion log, ledger drop)
#   DISABLED --reenable--> ACTIVE    (unlock, clear expiry, ledger drop)

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .errors import SetupError
from .identity import Account, IdentitySource, Status
from .ledger import DeletionLog, LedgerStore
from .selection import Action


class Outcome(enum.Enum):
    RECONCILED = "reconciled"
    KEPT = "kept"
    DISABLED = "disabled"
    ALREADY_DISABLED = "already_disabled"
    DELETED = "deleted"
    REENABLED = "reenabled"
    REVOKED = "revoked"
    FAILED = "failed"


@dataclass
class AccountResult:
    name: str
    outcome: Outcome
    detail: str = ""


@dataclass
class BatchResult:
    action: str
    results: list[AccountResult] = field(default_factory=list)

    def add(self, name: str, outcome: Outcome, detail: str = "") -> AccountResult:
        r = AccountResult(name, outcome, detail)
        self.results.append(r)
        return r

    def names(self, outcome: Outcome) -> list[str]:
        return [r.name for r in self.results if r.outcome is outcome]

    @property
    def failed(self) -> list[AccountResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]


class Reconciler:
    """Drives lifecycle transitions against an identity source and the ledger."""

    def __init__(self, identity: IdentitySource, ledger: LedgerStore, deletions: DeletionLog,
                 remove_home_on_disable: bool = True, home_root: str = "/home"):
        self.identity = identity
        self.ledger = ledger
        self.deletions = deletions
        self.remove_home_on_disable = remove_home_on_disable
        self.home_root = home_root

    def _ledger(self, op: str, *args):
        try:
            return getattr(self.ledger, op)(*args)
        except (OSError, RuntimeError) as e:
            raise SetupError(f"Cannot access ledger {self.ledger.path}: {e}") from e

    def entries(self) -> list[str]:
        return self._ledger("entries")

    def clear_ledger(self):
        self._ledger("clear")

    # Function: _home_removable
    # Purpose : True only for an absolute path strictly below home_root.
    # Notes   : Symlinks are resolved first, so /home/x -> /usr/sbin is refused.
    def _home_removable(self, home: str | None) -> bool:
        if not home or not os.path.isabs(home) or not self.home_root:
            return False
        root = os.path.realpath(self.home_root)
        path = os.path.realpath(home)
        return path != root and os.path.commonpath([root, path]) == root

    #------------------#
    # Reconciliation   #
    #------------------#

    # Function: reconcile_one
    # Purpose : Read live status for one account and drop a stale ledger entry.
    # Notes   : Returns (status, purged). A vanished account reads as ACTIVE, so its entry goes too.
    def reconcile_one(self, name: str) -> tuple[Status, bool]:
        status = self.identity.status_of(name)
        purged = False
        if status is Status.ACTIVE and self._ledger("contains", name):
            purged = self._ledger("remove", name)
            if purged:
                logging.info("Account %s is active now; removed from disabled list", name)
        return status, purged

    def drift(self, names: Iterable[str]) -> list[str]:
        """Ledger entries among `names` whose account is no longer locked. Read-only."""
        on_ledger = self._ledger("load")
        return [n for n in names if n in on_ledger and self.identity.status_of(n) is Status.ACTIVE]

    def reconcile(self, names: Iterable[str], result: BatchResult | None = None) -> dict[str, Status]:
        statuses: dict[str, Status] = {}
        for name in names:
            status, purged = self.reconcile_one(name)
            statuses[name] = status
            if purged and result is not None:
                result.add(name, Outcome.RECONCILED, "active now; removed from disabled list")
        return statuses

    #------------------#
    # Transitions      #
    #------------------#

    def disable(self, account: Account, status: Status, result: BatchResult) -> AccountResult:
        name = account.name
        if status is Status.LOCKED:
            return result.add(name, Outcome.ALREADY_DISABLED, "already locked; skipped")
        if not self.identity.lock(name):
            return result.add(name, Outcome.FAILED, "lock failed")
        expired = self.identity.expire(name)
        # locked from here on, so it belongs in the ledger whatever else fails
        self._ledger("add", name)
        problems = [] if expired else ["expiry not set"]
        if self.remove_home_on_disable:
            home = account.home or self.identity.home_dir_of(name)
            if not self._home_removable(home):
                logging.info("Leaving home directory %s of %s in place; not under %s", home, name, self.home_root)
                problems.append(f"home directory {home} not removed (outside {self.home_root})")
            elif not self.identity.remove_home(home):
                problems.append(f"home directory {home} not removed")
        if not expired:
            return result.add(name, Outcome.FAILED, "locked, but " + "; ".join(problems))
        return result.add(name, Outcome.DISABLED, "; ".join(problems))

    def delete(self, account: Account, result: BatchResult) -> AccountResult:
        name = account.name
        if not self.identity.delete(name):
            return result.add(name, Outcome.FAILED, "delete failed")
        try:
            line = self.deletions.append(name)
        except (OSError, RuntimeError) as e:
            raise SetupError(f"Cannot write deletion log {self.deletions.path}: {e}") from e
        self._ledger("remove", name)
        return result.add(name, Outcome.DELETED, line.strip())

    def reenable(self, name: str, result: BatchResult) -> AccountResult:
        if not self.identity.unlock(name):
            return result.add(name, Outcome.FAILED, "unlock failed")
        # unlocked now, so the ledger entry is stale regardless of expiry
        self._ledger("remove", name)
        if not self.identity.clear_expiry(name):
            return result.add(name, Outcome.FAILED, "unlocked, but expiry not cleared")
        return result.add(name, Outcome.REENABLED)

    def revoke(self, name: str, group: str, result: BatchResult) -> AccountResult:
        if self.identity.remove_from_group(name, group):
            return result.add(name, Outcome.REVOKED, group)
        return result.add(name, Outcome.FAILED, f"could not remove from {group}")

    #------------------#
    # Batches          #
    #------------------#

    # Function: run_batch
    # Purpose : Reconcile every candidate, then apply one action to the non-kept ones.
    # Notes   : Keep membership is by name so a reordered list can't hit the wrong account.
    def run_batch(self, candidates: Sequence[Account], keep: Iterable[str], action: Action) -> BatchResult:
        keep_names = set(keep)
        result = BatchResult(action=action.name.lower())
        statuses = self.reconcile((a.name for a in candidates), result)

        for account in candidates:
            if account.name in keep_names:
                result.add(account.name, Outcome.KEPT)
                continue
            if action is Action.DISABLE:
                self.disable(account, statuses[account.name], result)
            else:
                self.delete(account, result)

        logging.info("Batch %s complete: %d disabled, %d deleted, %d kept, %d failed",
                     result.action, len(result.names(Outcome.DISABLED)), len(result.names(Outcome.DELETED)),
                     len(result.names(Outcome.KEPT)), len(result.failed))
        return result

    # Function: reenable_batch
    # Purpose : Re-enable the chosen ledger entries.
    # Notes   : Callers reconcile the ledger first; entries no longer on the ledger are skipped.
    def reenable_batch(self, names: Sequence[str]) -> BatchResult:
        result = BatchResult(action="reenable")
        on_ledger = self._ledger("load")
        for name in names:
            if name not in on_ledger:
                logging.debug("Skipping %s; no longer on the ledger", name)
                continue
            self.reenable(name, result)
        return result
