# Identity source adapter: the live account database as seen through the
# shadow-utils binaries. Queries never raise for an account that vanished
# mid-run; mutations return True/False and log, they don't raise.

import enum
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Callable

#------------------------------#
# Pinned binaries for exec     #
#------------------------------#
BIN = {
  "getent":  "/usr/bin/getent",
  "id":      "/usr/bin/id",
  "passwd":  "/usr/bin/passwd",
  "usermod": "/usr/sbin/usermod",
  "userdel": "/usr/sbin/userdel",
  "chage":   "/usr/bin/chage",
  "gpasswd": "/usr/bin/gpasswd",
  "deluser": "/usr/sbin/deluser",
  "sudo":    "/usr/bin/sudo",
}

Runner = Callable[..., tuple[int, str, str]]


class Status(enum.Enum):
    ACTIVE = "active"
    LOCKED = "locked"


@dataclass
class Account:
    name: str
    uid: int
    home: str | None = None
    status: Status = Status.ACTIVE
    groups: set[str] = field(default_factory=set)


# Function: fncRun
# Purpose : Execute a pinned binary by logical key; capture rc/stdout/stderr.
# Notes   : Returns (returncode, stdout, stderr). Missing binary -> rc 127, never raises.
def fncRun(cmdkey: str, args: list[str] | None = None, input: str | None = None) -> tuple[int, str, str]:
    exe = BIN.get(cmdkey)
    if not exe or not os.path.exists(exe):
        return 127, "", f"binary not found: {cmdkey} -> {exe}"
    try:
        p = subprocess.run([exe] + (args or []), input=input, capture_output=True, text=True, check=False)
        return p.returncode, p.stdout.strip(), p.stderr.strip()
    except OSError as e:
        return 127, "", str(e)

# Function: fncParsePasswd
# Purpose : Parse getent/passwd text into (name, uid, home) tuples.
# Notes   : Skips blank, comment and malformed lines; keeps database order.
def fncParsePasswd(text: str) -> list[tuple[str, int, str]]:
    rows = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(":")
        if len(parts) < 7:
            continue
        try:
            uid = int(parts[2])
        except ValueError:
            continue
        rows.append((parts[0], uid, parts[5]))
    return rows


class IdentitySource:
    """Adapter over getent/passwd/id and the account-mutation binaries."""

    def __init__(self, run: Runner = fncRun, protected: frozenset[str] = frozenset({"root"})):
        self._run = run
        self.protected = frozenset(protected) | {"root"}

    #------------------#
    # Queries          #
    #------------------#

    def list_candidates(self, min_uid: int) -> list[Account]:
        rc, out, err = self._run("getent", ["passwd"])
        if rc != 0:
            logging.error("getent passwd failed: %s", err)
            return []
        accounts = []
        for name, uid, home in fncParsePasswd(out):
            if uid == 0 or name in self.protected:
                continue
            if uid < min_uid:
                continue
            accounts.append(Account(name=name, uid=uid, home=home or None))
        return accounts

    def status_of(self, name: str) -> Status:
        rc, out, _ = self._run("passwd", ["-S", name])
        if rc != 0 or not out:
            logging.debug("passwd -S failed for %s; treating as active", name)
            return Status.ACTIVE
        parts = out.split()
        if len(parts) >= 2 and parts[1] in ("L", "LK"):
            return Status.LOCKED
        return Status.ACTIVE

    def groups_of(self, name: str) -> set[str]:
        rc, out, _ = self._run("id", ["-nG", name])
        if rc != 0 or not out:
            return set()
        return set(out.split())

    def home_dir_of(self, name: str) -> str | None:
        rc, out, _ = self._run("getent", ["passwd", name])
        if rc != 0 or not out:
            return None
        rows = fncParsePasswd(out)
        return (rows[0][2] or None) if rows else None

    def sudo_privileges(self, name: str) -> tuple[bool, str]:
        rc, out, err = self._run("sudo", ["-l", "-U", name])
        text = "\n".join(s for s in (out, err) if s)
        return rc == 0, text

    #------------------#
    # Mutations        #
    #------------------#

    def _mutate(self, cmdkey: str, args: list[str], what: str, name: str) -> bool:
        rc, _, err = self._run(cmdkey, args)
        if rc != 0:
            logging.error("Failed to %s %s: %s", what, name, err)
            return False
        logging.info("%s: %s", what.capitalize(), name)
        return True

    def lock(self, name: str) -> bool:
        return self._mutate("usermod", ["-L", name], "lock", name)

    def expire(self, name: str) -> bool:
        return self._mutate("chage", ["-E", "0", name], "expire", name)

    def unlock(self, name: str) -> bool:
        return self._mutate("usermod", ["-U", name], "unlock", name)

    def clear_expiry(self, name: str) -> bool:
        return self._mutate("chage", ["-E", "-1", name], "clear expiry for", name)

    def delete(self, name: str) -> bool:
        return self._mutate("userdel", ["-r", name], "delete (with home)", name)

    def remove_from_group(self, name: str, group: str) -> bool:
        rc, _, err = self._run("gpasswd", ["-d", name, group])
        if rc == 127:
            # no gpasswd on this box (some Debian minimal images)
            rc, _, err = self._run("deluser", [name, group])
        if rc != 0:
            logging.error("Failed to remove %s from group %s: %s", name, group, err)
            return False
        logging.info("Removed %s from group %s", name, group)
        return True

    # Function: remove_home
    # Purpose : Best-effort removal of a home directory tree.
    # Notes   : Refuses "/" and non-absolute paths; returns False on any failure.
    def remove_home(self, path: str | None) -> bool:
        if not path or not os.path.isabs(path) or os.path.realpath(path) == "/":
            logging.warning("Refusing to remove home directory %r", path)
            return False
        if not os.path.isdir(path):
            logging.debug("Home directory %s not present; nothing to remove", path)
            return True
        try:
            shutil.rmtree(path)
        except OSError as e:
            logging.error("Failed to remove home directory %s: %s", path, e)
            return False
        logging.info("Removed home directory: %s", path)
        return True
