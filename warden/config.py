# Runtime settings for acctwarden.
#
# Lists and reports live in /root by default. Each value can be overridden from the
# environment (ACCTWARDEN_*), and the CLI applies its flags on top with
# dataclasses.replace().

import logging
import os
import re
from dataclasses import dataclass, field

from .errors import SetupError

ENV_PREFIX = "ACCTWARDEN_"

#===========================#
# Environment Overlay Utils #
#===========================#

# Function: _env_str
# Purpose : Return stripped string from env with default fallback.
# Notes   : Blank values fall back to the default.
def _env_str(name: str, default: str) -> str:
    v = os.getenv(ENV_PREFIX + name)
    if v is None or not v.strip():
        return default
    return v.strip()

# Function: _env_bool
# Purpose : Read boolean-like env vars with a default.
# Notes   : Accepts 1/true/yes/y/on (case-insensitive).
def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(ENV_PREFIX + name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")

# Function: _env_int
# Purpose : Read an integer env var.
# Notes   : Logs and returns default on parse failure.
def _env_int(name: str, default: int) -> int:
    v = os.getenv(ENV_PREFIX + name, "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        logging.error("Bad integer in %s%s: %r", ENV_PREFIX, name, v)
        return default

# Function: _env_set
# Purpose : Parse a set from env using commas/spaces as separators.
# Notes   : Returns default when env missing/blank.
def _env_set(name: str, default: frozenset[str]) -> frozenset[str]:
    v = os.getenv(ENV_PREFIX + name, "")
    if not v.strip():
        return default
    parts = {p.strip() for p in re.split(r"[,\s]+", v) if p.strip()}
    return frozenset(parts) or default


@dataclass(frozen=True)
class Settings:
    """Paths and knobs shared by the engine, workflows and entry point."""

    ledger_path: str = "/root/disabled_accounts.list"
    deleted_log_path: str = "/root/deleted_accounts.list"
    report_dir: str = "/root"
    backup_dir: str = "/root"
    log_file: str = "/var/log/acctwarden/acctwarden.log"
    sudoers_path: str = "/etc/sudoers"
    sudoers_dir: str = "/etc/sudoers.d"
    home_root: str = "/home"
    identity_files: tuple[str, ...] = (
        "/etc/passwd", "/etc/shadow", "/etc/group", "/etc/gshadow",
    )
    default_min_uid: int = 1000
    protected_users: frozenset[str] = field(default_factory=lambda: frozenset({"root"}))
    remove_home_on_disable: bool = True
    backup: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        base = cls()
        return cls(
            ledger_path=_env_str("LEDGER", base.ledger_path),
            deleted_log_path=_env_str("DELETED_LOG", base.deleted_log_path),
            report_dir=_env_str("REPORT_DIR", base.report_dir),
            backup_dir=_env_str("BACKUP_DIR", base.backup_dir),
            log_file=_env_str("LOG_FILE", base.log_file),
            sudoers_path=_env_str("SUDOERS", base.sudoers_path),
            sudoers_dir=_env_str("SUDOERS_DIR", base.sudoers_dir),
            home_root=_env_str("HOME_ROOT", base.home_root),
            default_min_uid=_env_int("MIN_UID", base.default_min_uid),
            protected_users=_env_set("PROTECTED_USERS", base.protected_users) | {"root"},
            remove_home_on_disable=_env_bool("REMOVE_HOME_ON_DISABLE", base.remove_home_on_disable),
            backup=_env_bool("BACKUP", base.backup),
        )

    # Function: bootstrap
    # Purpose : Create the directories holding the ledger, deletion log and reports.
    # Notes   : Safe to call repeatedly; raises SetupError if a directory can't be made.
    def bootstrap(self) -> None:
        dirs = {
            os.path.dirname(os.path.abspath(self.ledger_path)),
            os.path.dirname(os.path.abspath(self.deleted_log_path)),
            os.path.abspath(self.report_dir),
        }
        for d in sorted(dirs):
            try:
                os.makedirs(d, mode=0o750, exist_ok=True)
            except OSError as e:
                raise SetupError(f"Cannot create directory {d}: {e}") from e
            if not os.access(d, os.W_OK):
                raise SetupError(f"Directory {d} is not writable")
