from __future__ import annotations

from pathlib import Path


class PruneError(Exception):
    """Fatal condition detected before any deletion happened."""


class RootNotFound(PruneError):
    def __init__(self, root: Path) -> None:
        super().__init__(f"Installation directory not found: {root}")
        self.root = root


class RootNotADirectory(PruneError):
    def __init__(self, root: Path) -> None:
        super().__init__(f"Installation path is not a directory: {root}")
        self.root = root


class RulesetLoadError(PruneError):
    pass


def resolve_root(path: str | Path) -> Path:
    root = Path(path).expanduser()
    if not root.exists():
        raise RootNotFound(root)
    root = root.resolve()
    if not root.is_dir():
        raise RootNotADirectory(root)
    return root
