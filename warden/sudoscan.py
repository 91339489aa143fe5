# Privilege grant scanner.
#
# Finds the groups that sudoers grants rights to. The one heuristic: after
# stripping leading whitespace, a line starting with the group sigil "%"
# names a privileged group. A commented-out grant ("# %admins ...") starts
# with "#" and so never counts. Aliases, Defaults and #include directives
# are not followed.

import logging
import os
import re

GROUP_SIGIL = "%"

_GRANT_RE = re.compile(r"^%([^\s]+)")


# Function: fncParseGrantLine
# Purpose : Return the group named by one sudoers line, or None.
# Notes   : Only the first token is inspected.
def fncParseGrantLine(line: str) -> str | None:
    m = _GRANT_RE.match(line.lstrip())
    return m.group(1) if m else None

# Function: fncParseGrants
# Purpose : Collect every group granted in a block of sudoers text.
def fncParseGrants(text: str) -> set[str]:
    groups = set()
    for line in text.splitlines():
        g = fncParseGrantLine(line)
        if g:
            groups.add(g)
    return groups

def _read_grants(path: str) -> set[str]:
    try:
        with open(path, "r", errors="replace") as f:
            return fncParseGrants(f.read())
    except FileNotFoundError:
        logging.debug("sudoers file %s not present", path)
    except OSError as e:
        logging.warning("Could not read sudoers file %s: %s", path, e)
    return set()

# Function: fncScanPrivilegedGroups
# Purpose : Scan the primary sudoers file plus the include directory.
# Notes   : Include files are read in name order; missing paths contribute nothing.
def fncScanPrivilegedGroups(primary_file: str, include_dir: str | None = None) -> frozenset[str]:
    groups = _read_grants(primary_file)
    if include_dir and os.path.isdir(include_dir):
        for entry in sorted(os.listdir(include_dir)):
            path = os.path.join(include_dir, entry)
            if os.path.isfile(path):
                groups |= _read_grants(path)
    logging.info("Privileged groups from %s (+%s): %s", primary_file, include_dir, sorted(groups))
    return frozenset(groups)

def fncMatchingGroups(account_groups: set[str], privileged: frozenset[str] | set[str]) -> list[str]:
    return sorted(set(account_groups) & set(privileged))
