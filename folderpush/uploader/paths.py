"""
Path helpers for the upload pipeline.

The remote store addresses files with forward-slash paths whatever the host
OS, so every destination path leaving this module is in that form.
"""

import os
import posixpath
from pathlib import PurePath
from typing import List

ALLOWED_EXTENSIONS = frozenset(
    [
        "css",
        "js",
        "json",
        "html",
        "txt",
        "md",
        "jpg",
        "jpeg",
        "png",
        "gif",
        "map",
        "svg",
        "ttf",
        "woff",
        "woff2",
        "zip",
    ]
)


def get_ext(file_path: str) -> str:
    """
    Return the lowercased extension of a path without the leading dot.

    Dotfiles such as ".folderpushignore" have no extension.

    Example:
        >>> get_ext("theme/css/Main.CSS")
        'css'
    """
    _, ext = os.path.splitext(file_path)
    return ext[1:].lower()


def is_allowed_extension(file_path: str) -> bool:
    return get_ext(file_path) in ALLOWED_EXTENSIONS


def split_local_path(file_path: str) -> List[str]:
    """Split a host path into its non-empty segments."""
    return [part for part in PurePath(file_path).parts if part not in ("", os.sep)]


def convert_to_unix_path(file_path: str) -> str:
    """Normalize host separators to forward slashes."""
    unix_path = file_path.replace(os.sep, "/")
    if os.altsep:
        unix_path = unix_path.replace(os.altsep, "/")
    return unix_path


def build_destination_path(file_path: str, source_root: str, destination_root: str) -> str:
    """
    Map a local file onto its destination path in the remote store.

    Strips the source root from the file path and joins the remainder onto
    the destination root.

    Args:
        file_path: Local file path under source_root
        source_root: Root directory the file was found under
        destination_root: Remote folder the tree is uploaded into

    Returns:
        Forward-slash destination path

    Raises:
        ValueError: If file_path is not under source_root

    Example:
        >>> build_destination_path("/work/theme/css/main.css", "/work/theme", "my-theme")
        'my-theme/css/main.css'
    """
    relative_path = os.path.relpath(file_path, source_root)
    if relative_path == os.curdir or relative_path.split(os.sep)[0] == os.pardir:
        raise ValueError(f"{file_path} is not under {source_root}")

    destination = posixpath.join(
        convert_to_unix_path(destination_root),
        convert_to_unix_path(relative_path),
    )
    return posixpath.normpath(destination)
