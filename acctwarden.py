#!/usr/bin/env python3
# Script: acctwarden.py
#
# What this does (for whoever is on keyboard during the exercise):
# - Process mode (default): back up identity files + /home, list accounts at
#   or above a UID threshold, pick the ones to keep, disable or delete the rest
# - Disabled accounts go in a ledger so --reenable can undo them later
# - Deleted accounts get a line in the deletion log for the post-mortem
# - --audit-sudo: find groups granted sudo, show who's in them, offer removal
# - Logs to /var/log/acctwarden/acctwarden.log, reports land in /root

# ==============================
# Imports
# ==============================

# Standard library
import argparse
import dataclasses
import logging
import os
import sys

# Local
from warden import __version__
from warden.config import Settings
from warden.console import fncInitConsole, fncPrintMessage, fncSetColorMode
from warden.errors import OperatorCancelled, PreconditionError, SetupError, WardenError
from warden.identity import IdentitySource
from warden.workflows import fncAuditPrivileges, fncProcessAccounts, fncReenableAccounts

#=================#
# Global Settings #
#=================#

MIN_PYTHON_VERSION = (3, 11)
ADMIN_REQUIRED = True   # Script requires root

#===================#
# Utility / Logging #
#===================#

# Function: fncCheckPyVersion
# Purpose : Fail fast on unsupported Python versions.
# Notes   : Requires Python >= MIN_PYTHON_VERSION.
def fncCheckPyVersion():
    if sys.version_info < MIN_PYTHON_VERSION:
        raise PreconditionError("This script requires Python 3.11.0 or higher. Please upgrade.")

# Function: fncAdminCheck
# Purpose : Ensure the process runs as root when ADMIN_REQUIRED is True.
# Notes   : Raised before anything is touched.
def fncAdminCheck():
    if ADMIN_REQUIRED and os.geteuid() != 0:
        raise PreconditionError("This script must be run as root. Try sudo.")

# Function: fncSetupLogging
# Purpose : Log to file at INFO (DEBUG with -v); only CRITICAL reaches stderr.
# Notes   : Operator-facing output goes through fncPrintMessage and the report, so per-account errors show once.
def fncSetupLogging(settings: Settings, mode: str, verbose: bool = False):
    log_dir = os.path.dirname(os.path.abspath(settings.log_file))
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file)
    except OSError as e:
        raise SetupError(f"Cannot open log file {settings.log_file}: {e}") from e
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.CRITICAL)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[file_handler, stream_handler],
        force=True,
    )
    logging.info("---- acctwarden start (%s) ----", mode)

# Function: fncBuildParser
# Purpose : CLI definition.
def fncBuildParser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="acctwarden",
        description="Disable, delete or re-enable local accounts and audit sudo group grants.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--reenable", action="store_true", help="Re-enable accounts from the disabled list")
    mode.add_argument("--audit-sudo", action="store_true", help="Audit sudo-privileged group memberships")
    parser.add_argument("--min-uid", type=int, help="Minimum UID to affect (prompted when omitted)")
    parser.add_argument("--ledger", help="Disabled accounts list")
    parser.add_argument("--deleted-log", help="Deleted accounts log")
    parser.add_argument("--report-dir", help="Directory for run reports")
    parser.add_argument("--log-file", help="Application log file")
    parser.add_argument("--backup-dir", help="Directory for pre-change backups")
    parser.add_argument("--sudoers", help="Primary sudoers file")
    parser.add_argument("--sudoers-dir", help="sudoers include directory")
    parser.add_argument("--no-backup", action="store_true", help="Skip the backup step in process mode")
    parser.add_argument("--keep-home", action="store_true", help="Leave home directories in place on disable")
    parser.add_argument("--no-color", action="store_true", help="Disable coloured output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser

# Function: fncSettingsFromArgs
# Purpose : Environment-derived settings with CLI flags layered on top.
def fncSettingsFromArgs(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    settings = base or Settings.from_env()
    overrides = {
        "ledger_path": args.ledger,
        "deleted_log_path": args.deleted_log,
        "report_dir": args.report_dir,
        "log_file": args.log_file,
        "backup_dir": args.backup_dir,
        "sudoers_path": args.sudoers,
        "sudoers_dir": args.sudoers_dir,
    }
    changes = {k: v for k, v in overrides.items() if v}
    if args.no_backup:
        changes["backup"] = False
    if args.keep_home:
        changes["remove_home_on_disable"] = False
    return dataclasses.replace(settings, **changes)

#=================#
# Script harness  #
#=================#

# Function: fncMain
# Purpose : Program entrypoint; preflight checks, logging, mode dispatch, exit status.
# Notes   : Exit 1 on precondition/setup failure or cancellation; per-account failures still exit 0.
def fncMain(argv: list[str] | None = None) -> int:
    args = fncBuildParser().parse_args(argv)
    fncInitConsole()
    fncSetColorMode(args.no_color)
    mode = "reenable" if args.reenable else "audit-sudo" if args.audit_sudo else "process"

    try:
        os.umask(0o077)
        fncCheckPyVersion()
        fncAdminCheck()
        settings = fncSettingsFromArgs(args)
        fncSetupLogging(settings, mode, args.verbose)
        settings.bootstrap()
        identity = IdentitySource(protected=settings.protected_users)

        fncPrintMessage(f"{mode.capitalize()} mode selected.", "info")
        if args.reenable:
            result = fncReenableAccounts(settings, identity)
        elif args.audit_sudo:
            result = fncAuditPrivileges(settings, identity, min_uid=args.min_uid)
        else:
            result = fncProcessAccounts(settings, identity, min_uid=args.min_uid)

        if result is not None and result.failed:
            fncPrintMessage(f"{len(result.failed)} account(s) had failures; see the report and log.", "warning")
        return 0
    except OperatorCancelled as e:
        fncPrintMessage(str(e), "error")
        return e.exit_code
    except WardenError as e:
        logging.info("Run aborted: %s", e)
        fncPrintMessage(str(e), "error")
        return e.exit_code
    except KeyboardInterrupt:
        fncPrintMessage("Bye then...", "error")
        return 1
    except Exception as e:
        logging.exception("Unhandled exception: %s", e)
        fncPrintMessage(f"Unexpected error: {e}. See the log for details.", "error")
        return 1

if __name__ == "__main__":
    sys.exit(fncMain())
