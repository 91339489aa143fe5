"""Tests for index selection, confirmation and action parsing."""

from __future__ import annotations

import pytest

from warden.selection import (
    Action,
    fncChooseAction,
    fncChooseSubset,
    fncConfirm,
    fncParseIndices,
    fncPartition,
)

CANDIDATES = ["u1", "u2", "u3", "u4", "u5"]


def test_keep_two_and_four_acts_on_the_rest():
    sel = fncPartition(CANDIDATES, "2 4")
    assert sel.keep == ["u2", "u4"]
    assert sel.act_on == ["u1", "u3", "u5"]
    assert sel.rejected == []


def test_empty_input_keeps_nobody():
    sel = fncPartition(CANDIDATES, "")
    assert sel.keep == []
    assert sel.act_on == CANDIDATES


def test_out_of_range_token_is_rejected_individually():
    sel = fncPartition(CANDIDATES, "2 99")
    assert sel.keep == ["u2"]
    assert sel.act_on == ["u1", "u3", "u4", "u5"]
    assert sel.rejected == ["99"]


@pytest.mark.parametrize("token", ["0", "-1", "abc", "2.5", "6", "²", "١"])
def test_invalid_tokens(token):
    indices, rejected = fncParseIndices(f"1 {token}", 5)
    assert indices == [0]
    assert rejected == [token]


def test_superscript_digit_does_not_abort_partition():
    sel = fncPartition(["u1", "u2", "u3"], "1 ²")
    assert sel.keep == ["u1"]
    assert sel.rejected == ["²"]


def test_duplicate_indices_collapse():
    indices, rejected = fncParseIndices("3 3  1\t3", 5)
    assert indices == [2, 0]
    assert rejected == []


def test_subset_defaults_to_everything():
    assert fncChooseSubset(CANDIDATES, "").act_on == CANDIDATES
    sel = fncChooseSubset(CANDIDATES, "zzz")
    assert sel.act_on == CANDIDATES
    assert sel.rejected == ["zzz"]


def test_subset_picks_chosen_indices():
    sel = fncChooseSubset(CANDIDATES, "5 1")
    assert sel.act_on == ["u1", "u5"]
    assert sel.keep == ["u2", "u3", "u4"]


@pytest.mark.parametrize("answer,expected", [
    ("y", True), ("Y", True), (" y ", True),
    ("", False), ("n", False), ("yes", False), (None, False),
])
def test_confirm(answer, expected):
    assert fncConfirm(answer) is expected


@pytest.mark.parametrize("answer,action,valid", [
    ("", Action.DISABLE, True),
    ("d", Action.DISABLE, True),
    ("r", Action.DELETE, True),
    ("R", Action.DELETE, True),
    ("x", Action.DISABLE, False),
])
def test_choose_action(answer, action, valid):
    assert fncChooseAction(answer) == (action, valid)
