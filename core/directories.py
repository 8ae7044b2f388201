"""Directory tree discovery."""
from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, Iterator, List, Tuple
import logging
import os

_LOGGER = logging.getLogger(__name__)


def _child_directories(directory: Path) -> List[Path]:
    try:
        with os.scandir(directory) as entries:
            return [Path(entry.path) for entry in entries if entry.is_dir()]
    except OSError as exc:
        _LOGGER.debug("Skipping unreadable directory %s: %s", directory, exc)
        return []


def list_directories(root: Path | str) -> List[Path]:
    """Return every directory below *root*, files excluded.

    The child directories of a directory are listed together, followed by the
    descendants of each child in turn, so a parent always precedes its
    descendants. Siblings keep the order reported by the filesystem, which is
    not sorted and differs between platforms.

    Symlinks to directories are followed, except into a directory that is
    already one of their own ancestors.

    A missing *root*, a *root* that is not a directory, or a directory that
    cannot be read contributes nothing; no error is raised.
    """

    start = Path(root)
    found: List[Path] = []

    children = _child_directories(start)
    found.extend(children)
    # Each entry pairs the unvisited children with the real paths of their ancestors.
    pending: List[Tuple[Iterator[Path], FrozenSet[str]]] = [
        (iter(children), frozenset({os.path.realpath(start)}))
    ]

    while pending:
        siblings, ancestors = pending[-1]
        directory = next(siblings, None)
        if directory is None:
            pending.pop()
            continue

        real = os.path.realpath(directory)
        if real in ancestors:
            continue

        children = _child_directories(directory)
        found.extend(children)
        pending.append((iter(children), ancestors | {real}))

    return found


__all__ = ["list_directories"]
