from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Verdict(str, Enum):
    KEEP = "keep"
    REMOVE = "remove"
    UNKNOWN = "unknown"


class RuleKind(str, Enum):
    PREFIX = "prefix"
    GLOB = "glob"
    EXTENSION = "extension"


@dataclass(frozen=True)
class Rule:
    kind: RuleKind
    pattern: str | frozenset[str]  # str for prefix/glob, extension set otherwise
    verdict: Verdict
    priority: int = 0
    reason: str = ""


@dataclass(frozen=True)
class Ruleset:
    rules: tuple[Rule, ...]
    archive_extensions: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Entry:
    path: str
    rel_path: str
    kind: str  # "file", "dir" or "symlink"


@dataclass(frozen=True)
class Outcome:
    rel_path: str
    kind: str
    verdict: Verdict
    action: str  # "removed", "kept", "error", "warning" or "partial"
    size: int = 0
    reason: str = ""
    message: str = ""


@dataclass
class PruneReport:
    root: str
    dry_run: bool = False
    files_removed: int = 0
    dirs_removed: int = 0
    bytes_reclaimed: int = 0
    files_kept: int = 0
    errors: int = 0
    warnings: int = 0
    archives_rewritten: int = 0
    archive_members_removed: int = 0
    archive_bytes_reclaimed: int = 0
    interrupted: bool = False
    outcomes: list[Outcome] = field(default_factory=list)

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)
        if outcome.action == "removed":
            if outcome.kind == "dir":
                self.dirs_removed += 1
            else:
                self.files_removed += 1
                self.bytes_reclaimed += outcome.size
        elif outcome.action == "kept":
            self.files_kept += 1
        elif outcome.action == "error":
            self.errors += 1
        elif outcome.action == "warning":
            self.warnings += 1

    @property
    def removed(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.action == "removed"]
