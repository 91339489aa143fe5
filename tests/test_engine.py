"""Tests for the lifecycle reconciliation engine."""

from __future__ import annotations

import pytest

from conftest import FakeIdentity, FakeUser
from warden.engine import BatchResult, Outcome, Reconciler
from warden.errors import SetupError
from warden.identity import Account, IdentitySource, Status
from warden.ledger import DeletionLog, LedgerStore
from warden.selection import Action


@pytest.fixture()
def engine(identity, tmp_path) -> Reconciler:
    return Reconciler(
        identity,
        LedgerStore(str(tmp_path / "disabled_accounts.list")),
        DeletionLog(str(tmp_path / "deleted_accounts.list")),
    )


def _candidates(identity: FakeIdentity) -> list[Account]:
    return identity.list_candidates(1000)


def _read(path) -> bytes | None:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None


def test_disable_batch_locks_expires_and_records(engine, identity):
    result = engine.run_batch(_candidates(identity), keep=["bob", "dave"], action=Action.DISABLE)

    assert result.names(Outcome.DISABLED) == ["alice", "carol", "erin"]
    assert result.names(Outcome.KEPT) == ["bob", "dave"]
    assert engine.ledger.load() == {"alice", "carol", "erin"}
    for name in ("alice", "carol", "erin"):
        assert identity.users[name].locked and identity.users[name].expired
    assert not identity.users["bob"].locked
    assert identity.removed_homes == ["/home/alice", "/home/carol", "/home/erin"]


def test_stale_ledger_entry_purged_before_keep_check(engine, identity):
    engine.ledger.add("bob")  # bob was unlocked by someone since the last run

    result = engine.run_batch(_candidates(identity), keep=["bob"], action=Action.DISABLE)

    assert not engine.ledger.contains("bob")
    assert ("bob", Outcome.RECONCILED) in [(r.name, r.outcome) for r in result.results]
    assert result.names(Outcome.KEPT) == ["bob"]


def test_reconcile_runs_for_every_candidate_before_any_transition(engine, identity):
    engine.run_batch(_candidates(identity), keep=[], action=Action.DISABLE)

    first_mutation = next(i for i, c in enumerate(identity.calls) if c[0] != "status_of")
    status_calls = [c[1] for c in identity.calls[:first_mutation]]
    assert status_calls == ["alice", "bob", "carol", "dave", "erin"]


def test_ledger_matches_live_lock_state_after_batch(engine, identity):
    engine.ledger.add("dave")                 # stale: dave is active
    identity.users["erin"].locked = True      # locked by us last run
    engine.ledger.add("erin")

    engine.run_batch(_candidates(identity), keep=["alice", "dave"], action=Action.DISABLE)

    for name, user in identity.users.items():
        assert engine.ledger.contains(name) == user.locked, name


def test_already_locked_is_skipped_without_duplicate(engine, identity):
    identity.users["alice"].locked = True
    engine.ledger.add("alice")
    before = _read(engine.ledger.path)

    result = engine.run_batch([a for a in _candidates(identity) if a.name == "alice"], keep=[],
                              action=Action.DISABLE)

    assert result.names(Outcome.ALREADY_DISABLED) == ["alice"]
    assert not result.failed
    assert _read(engine.ledger.path) == before
    assert ("lock", "alice") not in identity.calls


def test_externally_locked_account_is_not_adopted(engine, identity):
    identity.users["bob"].locked = True

    result = engine.run_batch(_candidates(identity), keep=[], action=Action.DISABLE)

    assert "bob" in result.names(Outcome.ALREADY_DISABLED)
    assert not engine.ledger.contains("bob")


def test_lock_failure_is_reported_and_batch_continues(engine, identity):
    identity.fail["lock"] = {"bob"}

    result = engine.run_batch(_candidates(identity), keep=[], action=Action.DISABLE)

    assert [r.name for r in result.failed] == ["bob"]
    assert not engine.ledger.contains("bob")
    assert ("expire", "bob") not in identity.calls
    assert result.names(Outcome.DISABLED) == ["alice", "carol", "dave", "erin"]


def test_expire_failure_still_records_locked_account(engine, identity):
    identity.fail["expire"] = {"carol"}

    result = engine.run_batch(_candidates(identity), keep=[], action=Action.DISABLE)

    assert [r.name for r in result.failed] == ["carol"]
    assert engine.ledger.contains("carol")
    assert identity.users["carol"].locked


def test_home_removal_failure_does_not_fail_disable(engine, identity):
    identity.home_removal_ok = False

    result = engine.run_batch(_candidates(identity)[:1], keep=[], action=Action.DISABLE)

    assert result.names(Outcome.DISABLED) == ["alice"]
    assert "not removed" in result.results[0].detail
    assert engine.ledger.contains("alice")


def test_keep_home_setting(identity, tmp_path):
    engine = Reconciler(identity, LedgerStore(str(tmp_path / "l")), DeletionLog(str(tmp_path / "d")),
                        remove_home_on_disable=False)
    engine.run_batch(_candidates(identity), keep=[], action=Action.DISABLE)
    assert identity.removed_homes == []


def test_delete_removes_ledger_entry_and_logs_once(engine, identity):
    identity.users["carol"].locked = True
    engine.ledger.add("carol")

    result = engine.run_batch(_candidates(identity), keep=["alice", "bob", "dave", "erin"],
                              action=Action.DELETE)

    assert result.names(Outcome.DELETED) == ["carol"]
    assert "carol" not in identity.users
    assert not engine.ledger.contains("carol")
    records = engine.deletions.records()
    assert [n for n, _ in records] == ["carol"]


def test_delete_batch_timestamps_do_not_go_backwards(engine, identity):
    engine.run_batch(_candidates(identity), keep=[], action=Action.DELETE)

    records = engine.deletions.records()
    assert [n for n, _ in records] == ["alice", "bob", "carol", "dave", "erin"]
    stamps = [ts for _, ts in records]
    assert stamps == sorted(stamps)


def test_delete_failure_leaves_log_untouched(engine, identity):
    identity.fail["delete"] = {"alice"}

    result = engine.run_batch(_candidates(identity)[:1], keep=[], action=Action.DELETE)

    assert [r.name for r in result.failed] == ["alice"]
    assert engine.deletions.records() == []


def test_reenable_disable_reenable_matches_single_reenable(engine, identity):
    alice = [a for a in _candidates(identity) if a.name == "alice"]
    engine.run_batch(alice, keep=[], action=Action.DISABLE)

    engine.reenable_batch(["alice"])
    after_single = engine.ledger.load()

    engine.run_batch(alice, keep=[], action=Action.DISABLE)
    assert engine.ledger.load() == {"alice"}
    engine.reenable_batch(["alice"])

    assert engine.ledger.load() == after_single == set()
    assert not identity.users["alice"].locked
    assert not identity.users["alice"].expired


def test_reenable_unlock_failure_keeps_entry(engine, identity):
    identity.users["bob"].locked = True
    engine.ledger.add("bob")
    identity.fail["unlock"] = {"bob"}

    result = engine.reenable_batch(["bob"])

    assert [r.name for r in result.failed] == ["bob"]
    assert engine.ledger.contains("bob")


def test_reenable_expiry_failure_drops_entry(engine, identity):
    identity.users["bob"].locked = True
    engine.ledger.add("bob")
    identity.fail["clear_expiry"] = {"bob"}

    result = engine.reenable_batch(["bob"])

    assert [r.name for r in result.failed] == ["bob"]
    assert not engine.ledger.contains("bob")


def test_reenable_skips_names_not_on_ledger(engine, identity):
    result = engine.reenable_batch(["alice"])
    assert result.results == []
    assert ("unlock", "alice") not in identity.calls


def test_drift_is_read_only(engine, identity):
    engine.ledger.add("alice")
    identity.users["bob"].locked = True
    engine.ledger.add("bob")
    before = _read(engine.ledger.path)

    assert engine.drift(["alice", "bob", "carol"]) == ["alice"]
    assert _read(engine.ledger.path) == before


def test_vanished_account_entry_is_purged(engine, identity):
    engine.ledger.add("ghost")
    status, purged = engine.reconcile_one("ghost")
    assert status is Status.ACTIVE
    assert purged
    assert not engine.ledger.contains("ghost")


def test_revoke(engine, identity):
    result = BatchResult(action="revoke")
    r = engine.revoke("carol", "wheel", result)
    assert r.outcome is Outcome.REVOKED
    assert "wheel" not in identity.users["carol"].groups

    identity.fail["remove_from_group"] = {"carol"}
    assert engine.revoke("carol", "admins", result).outcome is Outcome.FAILED


def test_unwritable_ledger_is_a_setup_error(tmp_path):
    identity = FakeIdentity({"alice": FakeUser(1000, "/home/alice")})
    engine = Reconciler(identity, LedgerStore(str(tmp_path / "missing-dir" / "ledger")),
                        DeletionLog(str(tmp_path / "d")))
    with pytest.raises(SetupError):
        engine.run_batch(identity.list_candidates(1000), keep=[], action=Action.DISABLE)


def test_disable_never_removes_home_outside_home_root(identity, tmp_path):
    home_root = tmp_path / "home"
    (home_root / "bob").mkdir(parents=True)
    outside = tmp_path / "usr_sbin"
    outside.mkdir()
    (outside / "nologin").write_text("")
    linked = home_root / "carol"
    linked.symlink_to(outside)
    identity.users["alice"].home = str(outside)
    identity.users["bob"].home = str(home_root / "bob")
    identity.users["carol"].home = str(linked)
    identity.users["dave"].home = str(home_root)
    identity.remove_home = IdentitySource(run=lambda *a, **k: (1, "", "")).remove_home
    engine = Reconciler(identity, LedgerStore(str(tmp_path / "l")), DeletionLog(str(tmp_path / "d")),
                        home_root=str(home_root))

    result = engine.run_batch(_candidates(identity)[:4], keep=[], action=Action.DISABLE)

    assert result.names(Outcome.DISABLED) == ["alice", "bob", "carol", "dave"]
    assert (outside / "nologin").exists()
    assert linked.is_symlink()
    assert home_root.is_dir()
    assert not (home_root / "bob").exists()
    details = {r.name: r.detail for r in result.results}
    for name in ("alice", "carol", "dave"):
        assert "outside" in details[name], name
    assert details["bob"] == ""


def test_ledger_read_failures_are_setup_errors(identity, tmp_path):
    ledger_dir = tmp_path / "ledger"
    ledger_dir.mkdir()
    engine = Reconciler(identity, LedgerStore(str(ledger_dir)), DeletionLog(str(tmp_path / "d")))

    with pytest.raises(SetupError):
        engine.reconcile_one("alice")
    with pytest.raises(SetupError):
        engine.drift(["alice"])
    with pytest.raises(SetupError):
        engine.reenable_batch(["alice"])
    with pytest.raises(SetupError):
        engine.entries()
