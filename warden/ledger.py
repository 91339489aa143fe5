# Durable state: the disabled-accounts ledger and the deletion log.
#
# The ledger is one account name per line, editable by hand. Every mutation
# re-reads the file and rewrites it atomically; there's no lock, so an edit
# made between our read and our write is lost.

import logging
import os
import stat
import tempfile
from datetime import datetime

DELETION_TS_FORMAT = "%Y-%m-%d_%H-%M-%S"


def _assert_regular_or_missing(p: str | os.PathLike):
    try:
        st = os.lstat(p)
        if not stat.S_ISREG(st.st_mode):
            raise RuntimeError(f"{p} is not a regular file")
    except FileNotFoundError:
        return

def _safe_write_atomic(path: str, data: str, mode: int = 0o600):
    d = os.path.dirname(os.path.abspath(path))
    _assert_regular_or_missing(path)
    # write to a secure temp in same dir
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=d)
    try:
        os.write(fd, data.encode())
        os.fsync(fd)
    finally:
        os.close(fd)
    os.chmod(tmp, mode)
    os.replace(tmp, path)


class LedgerStore:
    """Set of account names this tool has disabled."""

    def __init__(self, path: str):
        self.path = path

    def entries(self) -> list[str]:
        """Names in file order, without duplicates, blanks or comments."""
        try:
            with open(self.path, "r") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            return []
        seen: list[str] = []
        for line in lines:
            name = line.strip()
            if not name or name.startswith("#") or name in seen:
                continue
            seen.append(name)
        return seen

    def load(self) -> set[str]:
        return set(self.entries())

    def contains(self, name: str) -> bool:
        return name in self.load()

    def _save(self, names: list[str]):
        data = "".join(f"{n}\n" for n in names)
        _safe_write_atomic(self.path, data, 0o600)

    def add(self, name: str) -> bool:
        names = self.entries()
        if name in names:
            logging.debug("Ledger already has %s; no change", name)
            return False
        names.append(name)
        self._save(names)
        logging.info("Ledger: recorded %s as disabled", name)
        return True

    def remove(self, name: str) -> bool:
        names = self.entries()
        if name not in names:
            return False
        self._save([n for n in names if n != name])
        logging.info("Ledger: removed %s", name)
        return True

    def clear(self):
        if not os.path.exists(self.path):
            return
        self._save([])
        logging.info("Ledger cleared: %s", self.path)


class DeletionLog:
    """Append-only forensic record of deleted accounts."""

    def __init__(self, path: str):
        self.path = path

    def append(self, name: str, when: datetime | None = None) -> str:
        when = when or datetime.now()
        line = f"{name} {when.strftime(DELETION_TS_FORMAT)}\n"
        _assert_regular_or_missing(self.path)
        fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
        try:
            os.write(fd, line.encode())
            os.fsync(fd)
        finally:
            os.close(fd)
        logging.info("Deletion logged: %s", line.strip())
        return line

    def records(self) -> list[tuple[str, datetime]]:
        try:
            with open(self.path, "r") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            return []
        out = []
        for line in lines:
            parts = line.split()
            if len(parts) != 2:
                continue
            try:
                out.append((parts[0], datetime.strptime(parts[1], DELETION_TS_FORMAT)))
            except ValueError:
                continue
        return out
