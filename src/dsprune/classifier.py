"""Map installation-relative paths to keep/remove verdicts.

Rules are ranked once, at construction: higher ``priority`` first, then the
longer literal prefix, then ruleset order. The first matching rule in that
ranking decides; a path no rule matches is kept.
"""

from __future__ import annotations

import fnmatch
import posixpath

from dsprune.models import Rule, RuleKind, Ruleset, Verdict

_WILDCARDS = "*?["


def normalize(rel_path: str) -> str:
    path = rel_path.replace("\\", "/").lower()
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")


def literal_prefix(rule: Rule) -> str:
    if rule.kind is RuleKind.EXTENSION:
        return ""
    pattern = str(rule.pattern)
    for index, char in enumerate(pattern):
        if char in _WILDCARDS:
            return pattern[:index]
    return pattern


def _normalize_rule(rule: Rule) -> Rule:
    if rule.kind is RuleKind.EXTENSION:
        raw = (rule.pattern,) if isinstance(rule.pattern, str) else rule.pattern
        extensions = frozenset(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in raw
        )
        pattern: str | frozenset[str] = extensions
    else:
        pattern = str(rule.pattern).replace("\\", "/").lower().lstrip("/")
    return Rule(
        kind=rule.kind,
        pattern=pattern,
        verdict=rule.verdict,
        priority=rule.priority,
        reason=rule.reason,
    )


class Classifier:
    def __init__(self, ruleset: Ruleset) -> None:
        self.ruleset = ruleset
        rules = [_normalize_rule(rule) for rule in ruleset.rules]
        order = sorted(
            range(len(rules)),
            key=lambda i: (-rules[i].priority, -len(literal_prefix(rules[i])), i),
        )
        self._ranked: tuple[Rule, ...] = tuple(rules[i] for i in order)
        self._archive_extensions = frozenset(
            ext.lower() for ext in ruleset.archive_extensions
        )

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._ranked

    def classify(self, rel_path: str, is_dir: bool = False) -> Verdict:
        rule = self.match(rel_path, is_dir)
        if rule is None:
            return Verdict.KEEP
        return rule.verdict

    def match(self, rel_path: str, is_dir: bool = False) -> Rule | None:
        path = normalize(rel_path)
        if not path:
            return None
        if is_dir:
            return self._match_dir(path)
        for rule in self._ranked:
            if _matches_file(rule, path):
                return rule
        return None

    def is_archive(self, rel_path: str) -> bool:
        _, ext = posixpath.splitext(normalize(rel_path))
        return bool(ext) and ext in self._archive_extensions

    def _match_dir(self, path: str) -> Rule | None:
        # A directory verdict only says "everything beneath is removable".
        # Anything short of that leaves the children to be classified.
        for index, rule in enumerate(self._ranked):
            if not _covers_dir(rule, path):
                continue
            if rule.verdict is not Verdict.REMOVE:
                return None
            for stronger in self._ranked[:index]:
                if stronger.verdict is Verdict.KEEP and _may_match_below(stronger, path):
                    return None
            return rule
        return None


def _matches_file(rule: Rule, path: str) -> bool:
    if rule.kind is RuleKind.EXTENSION:
        _, ext = posixpath.splitext(path)
        return bool(ext) and ext in rule.pattern
    if rule.kind is RuleKind.PREFIX:
        return path.startswith(str(rule.pattern))
    return fnmatch.fnmatchcase(path, str(rule.pattern))


def _covers_dir(rule: Rule, path: str) -> bool:
    dir_path = path + "/"
    if rule.kind is RuleKind.PREFIX:
        return dir_path.startswith(str(rule.pattern))
    if rule.kind is RuleKind.GLOB:
        pattern = str(rule.pattern)
        # A trailing "*" also absorbs every deeper path segment.
        return pattern.endswith("*") and fnmatch.fnmatchcase(dir_path, pattern)
    return False


def _may_match_below(rule: Rule, path: str) -> bool:
    if rule.kind is RuleKind.EXTENSION:
        return True
    dir_path = path + "/"
    prefix = literal_prefix(rule)
    return prefix.startswith(dir_path) or dir_path.startswith(prefix)
