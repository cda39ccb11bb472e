"""Utility functions for aioopendj."""

from __future__ import annotations

import shutil

from aioopendj.errors import MissingBinaryError


def find_binary(name: str) -> str:
    """Return the full path of an executable.

    Accepts either a bare command name, looked up in PATH, or a path to an
    executable file.

    Raises:
        MissingBinaryError: If the executable can't be found.
    """
    path = shutil.which(name)
    if path is None:
        raise MissingBinaryError(name)
    return path
