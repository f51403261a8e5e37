"""Recursive directory enumeration."""

import os
from typing import List

from folderpush.utils.logging import get_logger

logger = get_logger(__name__)


def walk(root: str) -> List[str]:
    """
    List every file under root, recursively.

    Symlinked directories are not descended into. Paths are absolute and
    sorted so repeated runs enumerate in the same order.

    Raises:
        NotADirectoryError: If root is not a directory
    """
    root = os.path.abspath(root)
    if not os.path.isdir(root):
        raise NotADirectoryError(f"Not a directory: {root}")

    files: List[str] = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        files.extend(os.path.join(dirpath, name) for name in filenames)

    files.sort()
    logger.debug(f"Found {len(files)} files under {root}")
    return files


def _raise_walk_error(error: OSError) -> None:
    raise error
