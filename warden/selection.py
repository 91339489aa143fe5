# Selection workflow: turn a numbered candidate list plus whatever the
# operator typed into a keep / act-on partition. Pure functions; the
# prompting lives in workflows.py.

import enum
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

T = TypeVar("T")


class Action(enum.Enum):
    DISABLE = "d"
    DELETE = "r"


@dataclass
class SelectionSet:
    keep: list = field(default_factory=list)
    act_on: list = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


# Function: fncParseIndices
# Purpose : Parse whitespace-separated 1-based indices against a list size.
# Notes   : Returns (0-based indices in input order, rejected tokens). Duplicates collapse.
def fncParseIndices(text: str, count: int) -> tuple[list[int], list[str]]:
    indices: list[int] = []
    rejected: list[str] = []
    for token in (text or "").split():
        if token.isascii() and token.isdigit() and 1 <= int(token) <= count:
            idx = int(token) - 1
            if idx not in indices:
                indices.append(idx)
        else:
            rejected.append(token)
    return indices, rejected

# Function: fncPartition
# Purpose : Split candidates into keep / act-on from the keep-index input.
# Notes   : Empty input keeps nothing, so every candidate is acted on.
def fncPartition(candidates: Sequence[T], keep_text: str) -> SelectionSet:
    indices, rejected = fncParseIndices(keep_text, len(candidates))
    keep = [candidates[i] for i in sorted(indices)]
    act_on = [c for i, c in enumerate(candidates) if i not in indices]
    return SelectionSet(keep=keep, act_on=act_on, rejected=rejected)

# Function: fncChooseSubset
# Purpose : Pick the candidates to act on directly (re-enable flow).
# Notes   : Empty input, or input with no valid index, selects everything.
def fncChooseSubset(candidates: Sequence[T], text: str) -> SelectionSet:
    indices, rejected = fncParseIndices(text, len(candidates))
    if not indices:
        return SelectionSet(keep=[], act_on=list(candidates), rejected=rejected)
    chosen = [candidates[i] for i in sorted(indices)]
    rest = [c for i, c in enumerate(candidates) if i not in indices]
    return SelectionSet(keep=rest, act_on=chosen, rejected=rejected)

def fncConfirm(answer: str | None) -> bool:
    return (answer or "").strip() in ("y", "Y")

# Function: fncChooseAction
# Purpose : Map the d/r answer to an Action.
# Notes   : Returns (action, valid). Blank means disable; anything unknown also
#           falls back to disable but is flagged so the caller can warn.
def fncChooseAction(answer: str | None) -> tuple[Action, bool]:
    a = (answer or "").strip().lower()
    if a in ("", "d"):
        return Action.DISABLE, True
    if a == "r":
        return Action.DELETE, True
    return Action.DISABLE, False
