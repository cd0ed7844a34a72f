"""Path safety checks for everything that touches disk.

A candidate path is accepted only if, once made absolute and
symlink-resolved, it lies strictly inside an approved root. Raw candidates
containing ``..`` segments or characters the host filesystem cannot store
are rejected before resolution.
"""

import os
import re
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import PathRejectedError

PathLike = Union[str, os.PathLike]

# Characters Windows refuses in a path component (plus ASCII control chars)
_WINDOWS_ILLEGAL = re.compile(r'[<>:"|?*\x00-\x1f]')


def _has_illegal_characters(candidate: str) -> bool:
    """Check for characters the host filesystem cannot store."""
    if "\x00" in candidate:
        return True
    if sys.platform == "win32":
        _, rest = os.path.splitdrive(candidate)
        return bool(_WINDOWS_ILLEGAL.search(rest))
    return False


def _has_traversal(candidate: str) -> bool:
    """Check for parent-directory segments in either separator style."""
    return ".." in re.split(r"[\\/]+", candidate)


def resolve_within(candidate: PathLike, allowed_root: PathLike) -> Path:
    """Resolve a candidate path and require it to sit inside allowed_root.

    Args:
        candidate: Absolute path, or a path relative to allowed_root
        allowed_root: Directory the result must be nested under

    Returns:
        The absolute, symlink-resolved path

    Raises:
        PathRejectedError: If the candidate is malformed or escapes the root
    """
    raw = os.fspath(candidate)
    root_str = os.fspath(allowed_root)

    if not raw or not raw.strip():
        raise PathRejectedError(raw, root_str, "empty path")
    if _has_illegal_characters(raw):
        raise PathRejectedError(raw, root_str, "illegal characters")
    if _has_traversal(raw):
        raise PathRejectedError(raw, root_str, "parent directory traversal")

    try:
        root = Path(root_str).resolve()
        path = Path(raw)
        if not path.is_absolute():
            path = root / path
        resolved = path.resolve()
    except (OSError, RuntimeError, ValueError) as e:
        raise PathRejectedError(raw, root_str, f"unresolvable: {e}") from e

    if resolved == root or root not in resolved.parents:
        raise PathRejectedError(raw, root_str, "outside allowed root")

    return resolved


class PathGuard:
    """Validates paths against a single approved root."""

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def resolve(self, candidate: PathLike) -> Path:
        """Resolve candidate inside the root or raise PathRejectedError."""
        return resolve_within(candidate, self.root)

    def is_safe(self, candidate: PathLike) -> bool:
        """Return True if candidate resolves inside the root."""
        try:
            self.resolve(candidate)
        except PathRejectedError:
            return False
        return True


class MultiRootGuard:
    """Accepts a path if it resolves inside any of several roots."""

    def __init__(self, roots: Iterable[PathLike]):
        self.guards = [PathGuard(root) for root in roots]

    def resolve(self, candidate: PathLike) -> Path:
        """Resolve candidate inside the first matching root."""
        last_error: Optional[PathRejectedError] = None
        for guard in self.guards:
            try:
                return guard.resolve(candidate)
            except PathRejectedError as e:
                last_error = e

        if last_error is None:
            raise PathRejectedError(os.fspath(candidate), None, "no allowed roots configured")
        raise last_error

    def is_safe(self, candidate: PathLike) -> bool:
        """Return True if candidate resolves inside any root."""
        try:
            self.resolve(candidate)
        except PathRejectedError:
            return False
        return True
