# Operator workflows: process (disable/delete), re-enable, audit sudo groups.
#
# Each takes the Settings, an IdentitySource and an `ask` callable so the
# whole flow can be driven without a terminal. Declining the final
# confirmation raises OperatorCancelled before anything is mutated.

import logging
from typing import Callable

from .config import Settings
from .console import fncAsk, fncHeading, fncPrintMessage
from .engine import BatchResult, Outcome, Reconciler
from .errors import OperatorCancelled
from .identity import IdentitySource
from .ledger import DeletionLog, LedgerStore
from .report import AuditReport
from .selection import Action, fncChooseAction, fncChooseSubset, fncConfirm, fncPartition
from .snapshot import fncSnapshot
from .sudoscan import fncMatchingGroups, fncScanPrivilegedGroups

Ask = Callable[[str], str]

OUTCOME_STYLE = {
    Outcome.RECONCILED:       ("info", "Account {name} is active now; removed from disabled list."),
    Outcome.KEPT:             ("plain", "Keeping account: {name}"),
    Outcome.DISABLED:         ("success", "Account {name} disabled successfully."),
    Outcome.ALREADY_DISABLED: ("disabled", "Account {name} is already disabled. Skipping."),
    Outcome.DELETED:          ("success", "Account {name} deleted successfully."),
    Outcome.REENABLED:        ("success", "Account {name} re-enabled successfully."),
    Outcome.REVOKED:          ("success", "Removed {name} from {detail}."),
    Outcome.FAILED:           ("error", "Failed for account {name}: {detail}"),
}

RECOMMENDATIONS = [
    "Manually review any direct sudoers entries (not handled by group membership) in:",
    "    /etc/sudoers and /etc/sudoers.d/",
    "Check for complex aliases or Defaults settings that may grant elevated privileges.",
    "This audit covers group-based sudo privileges but may not catch every nuance in sudoers.",
    "Further hardening might include editing /etc/sudoers manually using visudo.",
]


def fncBuildEngine(settings: Settings, identity: IdentitySource) -> Reconciler:
    return Reconciler(
        identity,
        LedgerStore(settings.ledger_path),
        DeletionLog(settings.deleted_log_path),
        remove_home_on_disable=settings.remove_home_on_disable,
        home_root=settings.home_root,
    )

# Function: fncResolveMinUid
# Purpose : Use the CLI threshold if given, else prompt with the configured default.
# Notes   : Non-numeric answers warn and fall back to the default.
def fncResolveMinUid(settings: Settings, min_uid: int | None, ask: Ask = input) -> int:
    if min_uid is not None:
        return min_uid
    answer = fncAsk(f"Enter the minimum UID to affect (default is {settings.default_min_uid}): ", ask)
    if not answer:
        return settings.default_min_uid
    if not (answer.isascii() and answer.isdigit()):
        fncPrintMessage(f"Invalid UID '{answer}'. Using {settings.default_min_uid}.", "warning")
        return settings.default_min_uid
    return int(answer)

def _print_numbered(items: list[str]):
    for i, item in enumerate(items, start=1):
        print(f"{i:3d}) {item}")

def _warn_rejected(tokens: list[str]):
    for token in tokens:
        fncPrintMessage(f"Invalid index: {token}. Skipping.", "warning")
        logging.info("Ignored invalid index token %r", token)

def _report_results(result: BatchResult, report: AuditReport):
    for r in result.results:
        msg_type, template = OUTCOME_STYLE[r.outcome]
        report.tee(template.format(name=r.name, detail=r.detail), msg_type)
        if r.outcome is Outcome.DISABLED and r.detail:
            report.tee(f"  {r.name}: {r.detail}", "warning")
    report.line()
    report.line(f"Summary ({result.action}): "
                + ", ".join(f"{o.value}={len(result.names(o))}" for o in Outcome if result.names(o)))

#========================#
# Process mode           #
#========================#

# Function: fncProcessAccounts
# Purpose : Back up, list candidates, pick keepers, confirm, then disable or delete the rest.
# Notes   : Returns None when there was nothing to do.
def fncProcessAccounts(settings: Settings, identity: IdentitySource, ask: Ask = input,
                       min_uid: int | None = None, snapshot=fncSnapshot) -> BatchResult | None:
    if settings.backup:
        snapshot(settings.backup_dir, settings.identity_files, settings.home_root)

    threshold = fncResolveMinUid(settings, min_uid, ask)
    candidates = identity.list_candidates(threshold)
    if not candidates:
        fncPrintMessage(f"No user accounts found with UID >= {threshold}.", "warning")
        return None

    fncHeading("Candidate accounts")
    _print_numbered([f"{a.name} (uid {a.uid})" for a in candidates])

    keep_text = fncAsk("Enter the index numbers (separated by spaces) of accounts you want to keep "
                       "[default: keep none]: ", ask)
    selection = fncPartition(candidates, keep_text)
    _warn_rejected(selection.rejected)

    if selection.keep:
        fncPrintMessage("The following accounts will be kept:", "info")
        for a in selection.keep:
            print(f"  {a.name}")
    else:
        fncPrintMessage("No accounts will be kept. All listed accounts will be processed.", "warning")

    if not fncConfirm(fncAsk("Are you sure you want to process the remaining accounts? (y/N): ", ask)):
        logging.info("Process run cancelled at confirmation")
        raise OperatorCancelled("Operation cancelled.")

    print("For the remaining accounts, choose the action:")
    print("  d) Disable (lock account, expire login)")
    print("  r) Remove (delete account and home directory)")
    action, valid = fncChooseAction(fncAsk("Enter your choice (default is disable): ", ask))
    if not valid:
        fncPrintMessage("Invalid option. Defaulting to disable.", "warning")
    logging.info("Process run: min_uid=%d action=%s keep=%s", threshold, action.name,
                 [a.name for a in selection.keep])

    engine = fncBuildEngine(settings, identity)
    with AuditReport(settings.report_dir, "process") as report:
        report.line(f"Minimum UID: {threshold}")
        report.line(f"Action: {action.name.lower()}")
        report.line()
        result = engine.run_batch(candidates, [a.name for a in selection.keep], action)
        _report_results(result, report)
        fncPrintMessage(f"Report saved to {report.path}", "info")
    fncPrintMessage("Operation completed. Please review /etc/passwd for current user accounts.", "info")
    return result

#========================#
# Re-enable mode         #
#========================#

# Function: fncReenableAccounts
# Purpose : Re-enable accounts from the ledger, then optionally clear it.
# Notes   : Stale ledger entries are reconciled away before anything is listed.
def fncReenableAccounts(settings: Settings, identity: IdentitySource, ask: Ask = input) -> BatchResult | None:
    engine = fncBuildEngine(settings, identity)
    ledger = engine.ledger

    entries = engine.entries()
    stale = engine.drift(entries)
    disabled = [n for n in entries if n not in stale]
    for name in stale:
        fncPrintMessage(f"Account {name} is active now; it will be dropped from the disabled list.", "info")

    if not disabled:
        if stale:
            engine.reconcile(stale)
        fncPrintMessage(f"No disabled accounts recorded in {ledger.path}. Nothing to re-enable.", "info")
        return None

    fncHeading("Accounts marked as disabled")
    _print_numbered(disabled)
    selection = fncChooseSubset(disabled,
                                fncAsk("Enter the index numbers (separated by spaces) of accounts you want "
                                       "to re-enable [default: re-enable all]: ", ask))
    _warn_rejected(selection.rejected)

    fncPrintMessage("The following accounts will be re-enabled:", "info")
    for name in selection.act_on:
        print(f"  {name}")
    if not fncConfirm(fncAsk("Are you sure you want to re-enable these accounts? (y/N): ", ask)):
        logging.info("Re-enable run cancelled at confirmation")
        raise OperatorCancelled("Operation cancelled.")

    with AuditReport(settings.report_dir, "reenable") as report:
        result = BatchResult(action="reenable")
        engine.reconcile(stale, result)
        result.results.extend(engine.reenable_batch(selection.act_on).results)
        _report_results(result, report)

        if engine.entries():
            if fncConfirm(fncAsk("Clear the disabled accounts list? (y/N): ", ask)):
                engine.clear_ledger()
                report.tee("Disabled accounts list cleared.", "success")
        fncPrintMessage(f"Report saved to {report.path}", "info")
    return result

#========================#
# Audit-privileges mode  #
#========================#

# Function: fncAuditPrivileges
# Purpose : Report sudo-granting groups per user and offer to revoke each membership.
# Notes   : One prompt per (user, group) pair; "no" keeps that membership.
def fncAuditPrivileges(settings: Settings, identity: IdentitySource, ask: Ask = input,
                       min_uid: int | None = None) -> BatchResult | None:
    engine = fncBuildEngine(settings, identity)
    privileged = fncScanPrivilegedGroups(settings.sudoers_path, settings.sudoers_dir)

    with AuditReport(settings.report_dir, "sudo_audit") as report:
        report.tee("Sudo-privileged groups detected:", "info")
        for grp in sorted(privileged):
            report.tee(f"  {grp}")
        report.line()

        threshold = fncResolveMinUid(settings, min_uid, ask)
        candidates = identity.list_candidates(threshold)
        if not candidates:
            fncPrintMessage(f"No non-root users found with UID >= {threshold}.", "warning")
            return None

        fncHeading("Sudo Privilege Audit")
        report.line("=== Sudo Privilege Audit ===")
        report.tee("Auditing the following users: " + " ".join(a.name for a in candidates))

        matches: dict[str, list[str]] = {}
        for account in candidates:
            groups = identity.groups_of(account.name)
            matches[account.name] = fncMatchingGroups(groups, privileged)
            report.tee("")
            report.tee(f"User: {account.name} (uid {account.uid})")
            report.tee(f"Group Membership: {' '.join(sorted(groups)) or '-'}")
            if matches[account.name]:
                report.tee(f"{account.name} belongs to sudo-privileged group(s): "
                           f"{' '.join(matches[account.name])}", "info")
            else:
                report.tee(f"{account.name} does not belong to any recognized sudo-privileged groups.", "info")

            report.tee(f"Sudo privileges (via sudo -l -U {account.name}):")
            ok, output = identity.sudo_privileges(account.name)
            if not ok:
                report.tee(f"Could not retrieve sudo privileges for {account.name}. Output:", "warning")
            report.tee(output or "-")
            report.tee("-" * 50)

        fncHeading("Sudo Group Membership Removal")
        report.line("=== Sudo Group Membership Removal ===")
        result = BatchResult(action="revoke")
        for account in candidates:
            for grp in matches[account.name]:
                answer = fncAsk(f"User {account.name} is in group '{grp}' (sudo privileges). "
                                f"Remove {account.name} from this group? (y/N): ", ask)
                if fncConfirm(answer):
                    r = engine.revoke(account.name, grp, result)
                    msg_type, template = OUTCOME_STYLE[r.outcome]
                    report.tee(template.format(name=r.name, detail=r.detail), msg_type)
                else:
                    report.tee(f"Kept {account.name} in group {grp}.", "info")

        fncHeading("Audit Completed")
        report.line("=== Audit Completed ===")
        report.tee("Recommendations:")
        for rec in RECOMMENDATIONS:
            report.tee(f"  - {rec}" if not rec.startswith(" ") else f"  {rec}")
        fncPrintMessage(f"A final report has been saved to {report.path}", "info")
    return result
