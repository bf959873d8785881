from __future__ import annotations

import os
import struct
import zipfile
from pathlib import Path

import pytest

from dsprune.archives import prune_archive
from dsprune.classifier import Classifier
from dsprune.pruner import PruneOptions, run
from dsprune.rules import DEFAULT_RULESET


def _make_iwd(path: Path, members: dict[str, bytes]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)


def _names(path: Path) -> list[str]:
    with zipfile.ZipFile(path) as archive:
        return sorted(archive.namelist())


MEMBERS = {
    "images/loadscreen_mp_rust.iwi": b"i" * 4000,
    "sound/music/hz_t_menumusic.mp3": b"m" * 3000,
    "video/intro.bik": b"v" * 2000,
    "maps/mp/mp_rust.gsc": b"main() {}\n",
    "weapons/mp/m4_mp": b"WEAPONFILE\\displayName\\M4\n",
}


def test_prune_archive_drops_removable_members(tmp_path: Path) -> None:
    iwd = tmp_path / "main" / "iw_00.iwd"
    _make_iwd(iwd, MEMBERS)

    result = prune_archive(iwd, Classifier(DEFAULT_RULESET))

    assert result.rewritten
    assert result.members_removed == 3
    assert result.bytes_reclaimed > 0
    assert _names(iwd) == ["maps/mp/mp_rust.gsc", "weapons/mp/m4_mp"]
    with zipfile.ZipFile(iwd) as archive:
        assert archive.read("maps/mp/mp_rust.gsc") == b"main() {}\n"
    assert not (iwd.parent / "iw_00.iwd.temp").exists()


def test_prune_archive_is_idempotent(tmp_path: Path) -> None:
    iwd = tmp_path / "iw_00.iwd"
    _make_iwd(iwd, MEMBERS)
    classifier = Classifier(DEFAULT_RULESET)
    prune_archive(iwd, classifier)
    mtime = iwd.stat().st_mtime_ns

    second = prune_archive(iwd, classifier)

    assert not second.rewritten
    assert second.members_removed == 0
    assert iwd.stat().st_mtime_ns == mtime


def test_prune_archive_dry_run_leaves_file(tmp_path: Path) -> None:
    iwd = tmp_path / "iw_00.iwd"
    _make_iwd(iwd, MEMBERS)
    before = iwd.read_bytes()

    dry = prune_archive(iwd, Classifier(DEFAULT_RULESET), dry_run=True)

    assert iwd.read_bytes() == before
    assert not dry.rewritten
    assert dry.members_removed == 3
    real = prune_archive(iwd, Classifier(DEFAULT_RULESET))
    assert real.bytes_reclaimed == dry.bytes_reclaimed


def test_corrupt_archive_is_reported_not_raised(tmp_path: Path) -> None:
    iwd = tmp_path / "iw_00.iwd"
    iwd.write_bytes(b"not a zip file")

    result = prune_archive(iwd, Classifier(DEFAULT_RULESET))

    assert result.error
    assert iwd.read_bytes() == b"not a zip file"


def test_pruner_rewrites_archives(tmp_path: Path) -> None:
    _make_iwd(tmp_path / "main" / "iw_00.iwd", MEMBERS)
    _make_iwd(tmp_path / "main" / "localized_german_iw00.iwd", {"sound/de.mp3": b"x"})

    report = run(tmp_path, Classifier(DEFAULT_RULESET))

    assert _names(tmp_path / "main" / "iw_00.iwd") == ["maps/mp/mp_rust.gsc", "weapons/mp/m4_mp"]
    assert not (tmp_path / "main" / "localized_german_iw00.iwd").exists()
    assert report.archives_rewritten == 1
    assert report.archive_members_removed == 3
    assert report.files_removed == 1


def test_pruner_can_skip_archives(tmp_path: Path) -> None:
    _make_iwd(tmp_path / "main" / "iw_00.iwd", MEMBERS)

    report = run(tmp_path, Classifier(DEFAULT_RULESET), PruneOptions(archives=False))

    assert len(_names(tmp_path / "main" / "iw_00.iwd")) == len(MEMBERS)
    assert report.archives_rewritten == 0


def _corrupt_member(path: Path, name: str) -> None:
    with zipfile.ZipFile(path) as archive:
        info = archive.getinfo(name)
    data = bytearray(path.read_bytes())
    offset = info.header_offset
    name_len, extra_len = struct.unpack("<HH", data[offset + 26 : offset + 30])
    start = offset + 30 + name_len + extra_len
    data[start : start + info.compress_size] = b"\xff" * info.compress_size
    path.write_bytes(bytes(data))


def test_corrupt_member_is_recorded_and_walk_continues(tmp_path: Path) -> None:
    iwd = tmp_path / "main" / "a_iw.iwd"
    _make_iwd(iwd, {"images/hud.iwi": b"i" * 500, "maps/mp/a.gsc": b"main() {}\n" * 50})
    _corrupt_member(iwd, "maps/mp/a.gsc")
    before = iwd.read_bytes()
    (tmp_path / "textures").mkdir()
    (tmp_path / "textures" / "z.dds").write_text("x")

    report = run(tmp_path, Classifier(DEFAULT_RULESET))

    assert report.errors == 1
    error = next(o for o in report.outcomes if o.action == "error")
    assert error.rel_path == "main/a_iw.iwd"
    assert iwd.read_bytes() == before
    assert not (iwd.parent / "a_iw.iwd.temp").exists()
    assert not (tmp_path / "textures").exists()
    assert report.archives_rewritten == 0


def test_failed_swap_keeps_original(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    iwd = tmp_path / "main" / "iw_00.iwd"
    _make_iwd(iwd, MEMBERS)
    before = iwd.read_bytes()

    def fake_replace(src, dst):
        raise PermissionError("archive in use")

    monkeypatch.setattr(os, "replace", fake_replace)

    report = run(tmp_path, Classifier(DEFAULT_RULESET))

    assert report.errors == 1
    assert iwd.read_bytes() == before
    assert not (iwd.parent / "iw_00.iwd.temp").exists()
    assert "archive in use" in next(o for o in report.outcomes if o.action == "error").message
