"""Drop removable members from ``.iwd`` (zip) archives in place."""

from __future__ import annotations

import logging
import os
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path

from dsprune.classifier import Classifier
from dsprune.models import Verdict

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".temp"


@dataclass
class ArchiveResult:
    path: str
    members_removed: int = 0
    bytes_reclaimed: int = 0
    rewritten: bool = False
    error: str = ""
    removed_members: list[str] = field(default_factory=list)


def prune_archive(path: Path, classifier: Classifier, dry_run: bool = False) -> ArchiveResult:
    result = ArchiveResult(path=str(path))
    try:
        with zipfile.ZipFile(path) as archive:
            doomed = [
                info
                for info in archive.infolist()
                if not info.is_dir()
                and classifier.classify(info.filename) is Verdict.REMOVE
            ]
        if not doomed:
            return result
        if not dry_run:
            _rewrite(path, {info.filename for info in doomed})
    # Corrupt streams raise zlib.error, encrypted members RuntimeError and
    # unsupported compression NotImplementedError.
    except (OSError, zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError) as exc:
        logger.warning("Cannot prune archive %s: %s", path, exc)
        result.error = str(exc)
        return result
    result.removed_members = [info.filename for info in doomed]
    result.members_removed = len(doomed)
    result.bytes_reclaimed = sum(info.compress_size for info in doomed)
    result.rewritten = not dry_run
    logger.debug(
        "Removed %d members (%d bytes) from %s",
        result.members_removed,
        result.bytes_reclaimed,
        path,
    )
    return result


def _rewrite(path: Path, doomed: set[str]) -> None:
    temp_path = path.with_name(path.name + TEMP_SUFFIX)
    try:
        with zipfile.ZipFile(path) as source, zipfile.ZipFile(temp_path, "w") as out:
            for info in source.infolist():
                if info.filename in doomed:
                    continue
                out.writestr(info, source.read(info), compress_type=info.compress_type)
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
