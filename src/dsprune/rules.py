"""Compiled-in ruleset and the JSON ruleset format.

The defaults target IW4x-style installs (``main/`` and ``iw4x/`` holding
``.iwd`` archives) but the category rules are generic enough for most
Quake-lineage and Source-style server trees.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from dsprune.errors import RulesetLoadError
from dsprune.models import Rule, RuleKind, Ruleset, Verdict

ESSENTIAL_PRIORITY = 100
LOCALE_PRIORITY = 150
OVERRIDE_PRIORITY = 200

GAME_DIRS = ("main", "iw4x")
MEDIA_DIRS = ("images", "sound", "video", "textures", "sounds", "movies")
FOREIGN_LANGUAGES = (
    "french",
    "german",
    "italian",
    "spanish",
    "russian",
    "polish",
    "portuguese",
    "japanese",
    "korean",
    "chinese",
)

TEXTURE_EXTENSIONS = {".iwi", ".dds", ".tga", ".png", ".jpg", ".jpeg", ".bmp", ".ktx"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".ogg", ".flac", ".wem", ".bnk"}
VIDEO_EXTENSIONS = {".bik", ".bk2", ".webm", ".mp4", ".avi", ".usm"}

BINARY_EXTENSIONS = {".exe", ".dll", ".so", ".dylib", ".bin"}
CONFIG_EXTENSIONS = {".cfg", ".ini", ".json", ".toml", ".yaml", ".yml", ".xml"}
SCRIPT_EXTENSIONS = {".gsc", ".csc", ".lua", ".py", ".sh", ".bat"}
GAME_DATA_EXTENSIONS = {".ff", ".d3dbsp", ".map", ".nav", ".col"}

ARCHIVE_EXTENSIONS = {".iwd"}


def _ext(extensions: set[str], verdict: Verdict, reason: str, priority: int = 0) -> Rule:
    return Rule(
        kind=RuleKind.EXTENSION,
        pattern=frozenset(extensions),
        verdict=verdict,
        priority=priority,
        reason=reason,
    )


def _default_rules() -> tuple[Rule, ...]:
    rules: list[Rule] = [
        _ext(BINARY_EXTENSIONS, Verdict.KEEP, "binary", ESSENTIAL_PRIORITY),
        _ext(CONFIG_EXTENSIONS, Verdict.KEEP, "config", ESSENTIAL_PRIORITY),
        _ext(SCRIPT_EXTENSIONS, Verdict.KEEP, "script", ESSENTIAL_PRIORITY),
        _ext(GAME_DATA_EXTENSIONS, Verdict.KEEP, "game_data", ESSENTIAL_PRIORITY),
        _ext(TEXTURE_EXTENSIONS, Verdict.REMOVE, "texture"),
        _ext(AUDIO_EXTENSIONS, Verdict.REMOVE, "audio"),
        _ext(VIDEO_EXTENSIONS, Verdict.REMOVE, "video"),
        Rule(RuleKind.GLOB, "*localized_*", Verdict.REMOVE, LOCALE_PRIORITY, "locale_pack"),
        Rule(RuleKind.GLOB, "*localized_english*", Verdict.KEEP, OVERRIDE_PRIORITY, "server_locale"),
    ]
    for language in FOREIGN_LANGUAGES:
        rules.append(
            Rule(RuleKind.PREFIX, f"zone/{language}/", Verdict.REMOVE, LOCALE_PRIORITY, "locale_pack")
        )
    for media in MEDIA_DIRS:
        rules.append(Rule(RuleKind.PREFIX, f"{media}/", Verdict.REMOVE, 0, "media_dir"))
        if media == "video":
            continue
        for game_dir in GAME_DIRS:
            rules.append(
                Rule(RuleKind.PREFIX, f"{game_dir}/{media}/", Verdict.REMOVE, 0, "media_dir")
            )
    # The server never opens cinematics, so video folders go wholesale.
    for game_dir in GAME_DIRS:
        rules.append(
            Rule(RuleKind.PREFIX, f"{game_dir}/video/", Verdict.REMOVE, OVERRIDE_PRIORITY, "cinematics")
        )
    return tuple(rules)


DEFAULT_RULESET = Ruleset(
    rules=_default_rules(),
    archive_extensions=frozenset(ARCHIVE_EXTENSIONS),
)


def load_ruleset(path: Path) -> Ruleset:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RulesetLoadError(f"Cannot read ruleset {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RulesetLoadError(f"Invalid JSON in ruleset {path}: {exc}") from exc
    return ruleset_from_dict(data, source=str(path))


def ruleset_from_dict(data: Any, source: str = "<ruleset>") -> Ruleset:
    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise RulesetLoadError(f"{source}: expected an object with a 'rules' list")
    rules = tuple(
        _rule_from_dict(item, f"{source}: rule {index}")
        for index, item in enumerate(data["rules"])
    )
    archives = data.get("archive_extensions", [])
    if not isinstance(archives, list) or not all(isinstance(a, str) for a in archives):
        raise RulesetLoadError(f"{source}: 'archive_extensions' must be a list of strings")
    return Ruleset(
        rules=rules,
        archive_extensions=frozenset(_dotted(a) for a in archives),
    )


def _rule_from_dict(item: Any, where: str) -> Rule:
    if not isinstance(item, dict):
        raise RulesetLoadError(f"{where}: expected an object")
    try:
        kind = RuleKind(item.get("kind"))
        verdict = Verdict(item.get("verdict"))
    except ValueError as exc:
        raise RulesetLoadError(f"{where}: {exc}") from exc
    if verdict is Verdict.UNKNOWN:
        raise RulesetLoadError(f"{where}: verdict must be 'keep' or 'remove'")
    priority = item.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise RulesetLoadError(f"{where}: priority must be an integer")
    raw = item.get("pattern")
    pattern: str | frozenset[str]
    if kind is RuleKind.EXTENSION:
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list) or not raw or not all(isinstance(e, str) for e in raw):
            raise RulesetLoadError(f"{where}: extension pattern must be a list of strings")
        pattern = frozenset(_dotted(e) for e in raw)
    else:
        if not isinstance(raw, str) or not raw:
            raise RulesetLoadError(f"{where}: {kind.value} pattern must be a string")
        pattern = raw
    return Rule(
        kind=kind,
        pattern=pattern,
        verdict=verdict,
        priority=priority,
        reason=str(item.get("reason", "")),
    )


def _dotted(ext: str) -> str:
    ext = ext.lower()
    return ext if ext.startswith(".") else f".{ext}"


def ruleset_to_dict(ruleset: Ruleset) -> dict[str, Any]:
    rules = []
    for rule in ruleset.rules:
        pattern: Any = rule.pattern
        if isinstance(pattern, frozenset):
            pattern = sorted(pattern)
        rules.append(
            {
                "kind": rule.kind.value,
                "pattern": pattern,
                "verdict": rule.verdict.value,
                "priority": rule.priority,
                "reason": rule.reason,
            }
        )
    return {
        "rules": rules,
        "archive_extensions": sorted(ruleset.archive_extensions),
    }
