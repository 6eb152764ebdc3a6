"""Helpers for keeping cache file access inside the working directory."""

import os
from pathlib import Path


def resolve_within(root: Path, relative: str) -> Path:
    """Join *relative* onto *root*, refusing paths that escape it.

    Containment is checked lexically, so a symlink in the file set stays a
    link: only its own location has to be inside *root*, not its target.
    """
    if Path(relative).is_absolute():
        raise ValueError(f"Cache paths must be relative to the working directory: {relative}")
    root = Path(os.path.abspath(root))
    candidate = Path(os.path.normpath(root / relative))
    if candidate != root and not candidate.is_relative_to(root):
        raise ValueError(f"Cache path escapes the working directory: {relative}")
    return candidate
