"""Depth-first, post-order removal of entries the classifier marks removable.

Children are resolved before their parent, and each visit reports whether the
entry is gone. A directory is removed only when every child is gone and
something beneath it was actually removed (or a rule removes the whole
directory), so a kept file can never be orphaned and pre-existing empty
directories survive.

The walk assumes exclusive access to the installation while it runs.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from dsprune.archives import prune_archive
from dsprune.classifier import Classifier
from dsprune.models import Entry, Outcome, PruneReport, Rule, Verdict
from dsprune.report import format_outcome, format_size

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneOptions:
    dry_run: bool = False
    verbose: bool = False
    archives: bool = True
    bulk_directories: bool = True


class _Visit(NamedTuple):
    gone: bool
    removed: int
    # Not gone only because a removal failed somewhere beneath.
    blocked: bool = False


_KEPT = _Visit(gone=False, removed=0)


class Pruner:
    def __init__(
        self,
        root: Path,
        classifier: Classifier,
        options: PruneOptions | None = None,
    ) -> None:
        self.root = root
        self.classifier = classifier
        self.options = options or PruneOptions()
        self._stop_requested = False
        self._report = PruneReport(root=str(root), dry_run=self.options.dry_run)

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self) -> None:
        self._stop_requested = True

    def run(self) -> PruneReport:
        report = PruneReport(root=str(self.root), dry_run=self.options.dry_run)
        self._report = report
        logger.debug("Scanning %s (dry_run=%s)", self.root, self.options.dry_run)
        # The root is walked but never offered for removal.
        self._prune_dir(str(self.root), "", forced=None)
        report.interrupted = self._stop_requested
        logger.debug(
            "Finished %s: %d files removed, %d errors",
            self.root,
            report.files_removed,
            report.errors,
        )
        return report

    def _record(self, outcome: Outcome) -> None:
        self._report.record(outcome)
        if self.options.verbose:
            print(format_outcome(outcome))

    def _prune_dir(self, path: str, rel: str, forced: Rule | None) -> _Visit:
        try:
            names = sorted(os.listdir(path))
        except OSError as exc:
            logger.warning("Cannot list %s: %s", path, exc)
            self._record(
                Outcome(rel or ".", "dir", Verdict.UNKNOWN, "warning", message=str(exc))
            )
            return _KEPT
        removed = 0
        kept = False
        blocked = False
        for name in names:
            if self._stop_requested:
                return _Visit(gone=False, removed=removed)
            child = self._visit(os.path.join(path, name), f"{rel}/{name}" if rel else name, forced)
            removed += child.removed
            if child.blocked:
                blocked = True
            elif not child.gone:
                kept = True
        gone = not kept and not blocked
        return _Visit(gone=gone, removed=removed, blocked=blocked and not kept)

    def _visit(self, path: str, rel: str, forced: Rule | None) -> _Visit:
        try:
            st = os.lstat(path)
        except OSError as exc:
            logger.warning("Cannot stat %s: %s", path, exc)
            self._record(Outcome(rel, "file", Verdict.UNKNOWN, "warning", message=str(exc)))
            return _KEPT
        if stat.S_ISLNK(st.st_mode):
            return self._visit_file(Entry(path, rel, "symlink"), forced)
        if stat.S_ISDIR(st.st_mode):
            return self._visit_dir(Entry(path, rel, "dir"), forced)
        return self._visit_file(Entry(path, rel, "file"), forced)

    def _visit_dir(self, entry: Entry, forced: Rule | None) -> _Visit:
        rule = forced
        if rule is None and self.options.bulk_directories:
            rule = self.classifier.match(entry.rel_path, is_dir=True)
            if rule is not None:
                logger.debug("Removing %s wholesale (%s)", entry.rel_path, rule.reason)
        children = self._prune_dir(entry.path, entry.rel_path, rule)
        if children.gone and (children.removed or rule is not None):
            reason = rule.reason if rule is not None else "emptied"
            if self._remove(entry, reason):
                return _Visit(gone=True, removed=children.removed + 1)
            return _Visit(gone=False, removed=children.removed, blocked=True)
        if children.blocked and children.removed:
            self._record(
                Outcome(
                    entry.rel_path,
                    "dir",
                    Verdict.KEEP,
                    "partial",
                    message="left in place: some entries beneath could not be removed",
                )
            )
        return children._replace(gone=False)

    def _visit_file(self, entry: Entry, forced: Rule | None) -> _Visit:
        rule = forced if forced is not None else self.classifier.match(entry.rel_path)
        if rule is None or rule.verdict is not Verdict.REMOVE:
            reason = rule.reason if rule is not None else "no_rule"
            if (
                entry.kind == "file"
                and self.options.archives
                and self.classifier.is_archive(entry.rel_path)
            ):
                self._prune_archive(entry)
            self._record(Outcome(entry.rel_path, entry.kind, Verdict.KEEP, "kept", reason=reason))
            return _KEPT
        if self._remove(entry, rule.reason):
            return _Visit(gone=True, removed=1)
        return _Visit(gone=False, removed=0, blocked=True)

    def _remove(self, entry: Entry, reason: str) -> bool:
        size = 0
        try:
            if entry.kind != "dir":
                size = os.lstat(entry.path).st_size
            if not self.options.dry_run:
                if entry.kind == "dir":
                    os.rmdir(entry.path)
                else:
                    os.unlink(entry.path)
        except OSError as exc:
            logger.warning("Cannot remove %s: %s", entry.path, exc)
            self._record(
                Outcome(
                    entry.rel_path,
                    entry.kind,
                    Verdict.REMOVE,
                    "error",
                    reason=reason,
                    message=str(exc),
                )
            )
            return False
        self._record(
            Outcome(entry.rel_path, entry.kind, Verdict.REMOVE, "removed", size=size, reason=reason)
        )
        return True

    def _prune_archive(self, entry: Entry) -> None:
        result = prune_archive(Path(entry.path), self.classifier, dry_run=self.options.dry_run)
        if result.error:
            self._record(
                Outcome(
                    entry.rel_path,
                    "file",
                    Verdict.KEEP,
                    "error",
                    reason="archive",
                    message=result.error,
                )
            )
            return
        if not result.members_removed:
            return
        self._report.archives_rewritten += 1
        self._report.archive_members_removed += result.members_removed
        self._report.archive_bytes_reclaimed += result.bytes_reclaimed
        if self.options.verbose:
            print(
                f"[archive] {entry.rel_path}: {result.members_removed} members, "
                f"{format_size(result.bytes_reclaimed)}"
            )


def run(root: Path, classifier: Classifier, options: PruneOptions | None = None) -> PruneReport:
    return Pruner(root, classifier, options).run()
