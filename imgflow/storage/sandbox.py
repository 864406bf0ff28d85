"""
Sandboxed path resolution under the upload root.

Every directory the upload pipeline writes into is derived here from the fixed
upload root and a configured subfolder. The subfolder is cleaned to a small
character set and the joined path is then canonicalized (symlinks included) and
checked to still be a descendant of the root.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import structlog

from imgflow.utils.exceptions import InvalidSubfolderError, StorageError

logger = structlog.get_logger(__name__)

_LEADING_SEPARATORS_RE = re.compile(r'^[/\\]+')
_DISALLOWED_CHARS_RE = re.compile(r'[^a-zA-Z0-9/_-]')
# ".." before a separator anywhere ("x../y"), or as the trailing segment
_PARENT_SEGMENT_RE = re.compile(r'\.\.[/\\]|[/\\]\.\.$|^\.\.$')
_ABSOLUTE_PREFIX_RE = re.compile(r'^([/\\]|[A-Za-z]:)')

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class SandboxPath:
    root: Path
    target: Path


def is_traversal(subfolder: Optional[str]) -> bool:
    """
    True when the raw subfolder holds a parent reference or an absolute-path prefix.

    Any ``..`` followed by a separator counts, including inside a longer run of
    dots or after other characters, since cleaning would otherwise turn it into
    a silently different directory. ``a..b`` has no separator and is allowed.
    """
    raw = str(subfolder or '')
    return bool(_PARENT_SEGMENT_RE.search(raw) or _ABSOLUTE_PREFIX_RE.match(raw))


def clean_subfolder(subfolder: Optional[str]) -> str:
    """Drop every character outside ``[A-Za-z0-9/_-]`` and any leading separators."""
    cleaned = _DISALLOWED_CHARS_RE.sub('', str(subfolder or ''))
    # removing dots can expose a leading separator ("./a" -> "/a")
    return _LEADING_SEPARATORS_RE.sub('', cleaned)


def contains(root: PathLike, path: PathLike) -> bool:
    """Return True when ``path`` canonicalizes to ``root`` or a descendant of it."""
    root_path = Path(root).resolve()
    candidate = Path(path).resolve()
    rel = os.path.relpath(candidate, root_path)
    return not (rel == '..' or rel.startswith('..' + os.sep) or os.path.isabs(rel))


def safe_resolve(root: PathLike, subfolder: Optional[str]) -> SandboxPath:
    """
    Resolve a configured subfolder against the upload root.

    Args:
        root: Upload root directory
        subfolder: Configured subfolder, treated as untrusted

    Returns:
        SandboxPath with the canonical root and the validated target directory.
        The target is not created.

    Raises:
        InvalidSubfolderError: When the resolved target is not inside the root
    """
    root_path = Path(root).resolve()
    if is_traversal(subfolder):
        logger.error(
            "Upload subfolder contains a traversal token",
            subfolder=subfolder,
            root=str(root_path),
            security_risk="path_traversal"
        )
        raise InvalidSubfolderError(subfolder=subfolder)

    cleaned = clean_subfolder(subfolder)
    target = (root_path / cleaned).resolve()

    # symlinks below the root can still point outside of it
    if not contains(root_path, target):
        logger.error(
            "Upload subfolder escapes upload root",
            subfolder=subfolder,
            cleaned=cleaned,
            root=str(root_path),
            target=str(target),
            security_risk="path_traversal"
        )
        raise InvalidSubfolderError(subfolder=subfolder)

    return SandboxPath(root=root_path, target=target)


def ensure_dir(path: PathLike) -> Path:
    """
    Create a directory and its parents if missing.

    Safe to call concurrently for the same directory.

    Raises:
        StorageError: When the directory cannot be created
    """
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError(
            f"Unable to create upload directory: {e}",
            storage_operation="ensure_dir",
            storage_path=str(directory)
        ) from e
    return directory


__all__ = [
    'SandboxPath',
    'is_traversal',
    'clean_subfolder',
    'contains',
    'safe_resolve',
    'ensure_dir'
]
