"""owners.txt parsing.

An owners file governs every path under its directory that is not
overridden by a deeper owners file. Format, one entry per line:

    ; TEAM: infra        team whose members are candidate optional reviewers
    ; anything else      comment
    *alice               owner, without notify-on-every-iteration semantics
    bob                  owner

Parsing never raises. Unknown or malformed aliases surface later as
directory lookup failures.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

OWNERS_FILENAME = "owners.txt"

PREFIX_COMMENT = ";"
PREFIX_NO_NOTIFY = "*"
PREFIX_TEAM = "; TEAM: "

# Accepts "; TEAM: x" as well as ";TEAM:x".
_TEAM_RE = re.compile(r"^;\s*TEAM:\s*(.*)$")


@dataclass
class ReviewerGroup:
    """Owners and teams declared by one owners file."""

    owners: set[str] = field(default_factory=set)
    teams: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not self.owners and not self.teams


def parse_owners_file(content: str | None) -> ReviewerGroup:
    group = ReviewerGroup()
    if not content:
        return group

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        team_match = _TEAM_RE.match(line)
        if team_match:
            team = team_match.group(1).strip()
            if team:
                group.teams.add(team)
            continue

        if line.startswith(PREFIX_COMMENT):
            continue

        if line.startswith(PREFIX_NO_NOTIFY):
            owner = line[len(PREFIX_NO_NOTIFY) :].strip()
            if owner:
                group.owners.add(owner)
            continue

        group.owners.add(line)

    return group
