from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from warden.config import Settings
from warden.identity import Account, Status


@dataclass
class FakeUser:
    uid: int
    home: str | None = None
    locked: bool = False
    expired: bool = False
    groups: set[str] = field(default_factory=set)


class FakeIdentity:
    """In-memory identity source with the same contract as IdentitySource."""

    def __init__(self, users: dict[str, FakeUser] | None = None) -> None:
        self.users: dict[str, FakeUser] = dict(users or {})
        self.fail: dict[str, set[str]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.removed_homes: list[str | None] = []
        self.home_removal_ok = True
        self.sudo_output: dict[str, tuple[bool, str]] = {}

    def _failing(self, op: str, name: str) -> bool:
        return name in self.fail.get(op, set())

    def list_candidates(self, min_uid: int) -> list[Account]:
        return [
            Account(name=n, uid=u.uid, home=u.home)
            for n, u in self.users.items()
            if u.uid >= min_uid and u.uid != 0 and n != "root"
        ]

    def status_of(self, name: str) -> Status:
        self.calls.append(("status_of", name))
        u = self.users.get(name)
        return Status.LOCKED if u and u.locked else Status.ACTIVE

    def groups_of(self, name: str) -> set[str]:
        u = self.users.get(name)
        return set(u.groups) if u else set()

    def home_dir_of(self, name: str) -> str | None:
        u = self.users.get(name)
        return u.home if u else None

    def sudo_privileges(self, name: str) -> tuple[bool, str]:
        return self.sudo_output.get(name, (True, f"User {name} may run the following commands:"))

    def lock(self, name: str) -> bool:
        self.calls.append(("lock", name))
        if self._failing("lock", name) or name not in self.users:
            return False
        self.users[name].locked = True
        return True

    def expire(self, name: str) -> bool:
        self.calls.append(("expire", name))
        if self._failing("expire", name):
            return False
        self.users[name].expired = True
        return True

    def unlock(self, name: str) -> bool:
        self.calls.append(("unlock", name))
        if self._failing("unlock", name) or name not in self.users:
            return False
        self.users[name].locked = False
        return True

    def clear_expiry(self, name: str) -> bool:
        self.calls.append(("clear_expiry", name))
        if self._failing("clear_expiry", name):
            return False
        self.users[name].expired = False
        return True

    def delete(self, name: str) -> bool:
        self.calls.append(("delete", name))
        if self._failing("delete", name) or name not in self.users:
            return False
        del self.users[name]
        return True

    def remove_from_group(self, name: str, group: str) -> bool:
        self.calls.append(("remove_from_group", name, group))
        if self._failing("remove_from_group", name):
            return False
        self.users[name].groups.discard(group)
        return True

    def remove_home(self, path: str | None) -> bool:
        self.removed_homes.append(path)
        return self.home_removal_ok

    def mutations(self) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] != "status_of"]


@pytest.fixture()
def identity() -> FakeIdentity:
    return FakeIdentity({
        "alice": FakeUser(1000, "/home/alice", groups={"alice", "sudo"}),
        "bob": FakeUser(1001, "/home/bob", groups={"bob"}),
        "carol": FakeUser(1002, "/home/carol", groups={"carol", "wheel", "admins"}),
        "dave": FakeUser(1003, "/home/dave", groups={"dave"}),
        "erin": FakeUser(1004, "/home/erin", groups={"erin"}),
    })


@pytest.fixture()
def settings(tmp_path) -> Settings:
    sudoers_dir = tmp_path / "sudoers.d"
    sudoers_dir.mkdir()
    s = Settings(
        ledger_path=str(tmp_path / "disabled_accounts.list"),
        deleted_log_path=str(tmp_path / "deleted_accounts.list"),
        report_dir=str(tmp_path / "reports"),
        backup_dir=str(tmp_path / "backups"),
        log_file=str(tmp_path / "acctwarden.log"),
        sudoers_path=str(tmp_path / "sudoers"),
        sudoers_dir=str(sudoers_dir),
        home_root=str(tmp_path / "home"),
        backup=False,
    )
    s.bootstrap()
    return s


@pytest.fixture()
def answers():
    """Build an `ask` callable that replays scripted answers and records prompts."""

    def make(*replies: str):
        queue = list(replies)
        prompts: list[str] = []

        def ask(prompt: str) -> str:
            prompts.append(prompt)
            if not queue:
                raise AssertionError(f"unexpected prompt: {prompt}")
            return queue.pop(0)

        ask.prompts = prompts
        ask.remaining = queue
        return ask

    return make
