"""
File classification into ordered upload phases.

Files are uploaded category by category in FileCategory order. Bundle
assets must exist remotely before the templates that reference them, and
stylesheets/scripts before templates, so this order is a contract.

Bundle folders (directories whose name ends in ".module") get special
treatment; membership in a bundle always wins over the extension:
    - fields.js is converted into a static fields.json, which is uploaded
      in its place
    - meta.json is uploaded
    - fields.json is uploaded only when there is no fields.js beside it
    - any other JSON file is dropped, the remote store rejects it
    - everything else is uploaded unchanged
"""

import functools
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from folderpush.uploader.errors import FieldsConversionError, handle_fields_error
from folderpush.uploader.fields import (
    SCRIPTED_FIELDS_FILENAME,
    STATIC_FIELDS_FILENAME,
    convert_fields_js,
)
from folderpush.uploader.paths import get_ext, split_local_path
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)

BUNDLE_SUFFIX = ".module"
BUNDLE_META_FILENAME = "meta.json"


class FileCategory(str, Enum):
    """Upload phases, in processing order."""

    OTHER = "OTHER"
    BUNDLE_ASSET = "BUNDLE_ASSET"
    STYLE_SCRIPT = "STYLE_SCRIPT"
    TEMPLATE = "TEMPLATE"
    DATA = "DATA"


CATEGORY_ORDER = list(FileCategory)


@dataclass(frozen=True)
class LocalFile:
    """
    A file selected for upload.

    Attributes:
        path: Absolute path of the file to read
        root: Directory the destination path is computed relative to
        extension: Lowercased extension without the dot
        bundle_folder: Name of the enclosing bundle folder, if any
        derived_from: For converted descriptors, the scripted file they came from
    """

    path: str
    root: str
    extension: str
    bundle_folder: Optional[str] = None
    derived_from: Optional[str] = None

    @property
    def origin(self) -> str:
        """The file in the source tree this upload stands for."""
        return self.derived_from or self.path


def find_bundle_folder(file_path: str) -> Optional[str]:
    """Return the first directory segment of file_path ending in the bundle suffix."""
    directories = split_local_path(file_path)[:-1]
    return next((part for part in directories if part.endswith(BUNDLE_SUFFIX)), None)


def category_for_extension(extension: str) -> FileCategory:
    if extension in ("js", "css"):
        return FileCategory.STYLE_SCRIPT
    if extension == "html":
        return FileCategory.TEMPLATE
    if extension == "json":
        return FileCategory.DATA
    return FileCategory.OTHER


FieldsConverter = Callable[[str, Optional[Sequence[str]], str, str], str]


class FileClassifier:
    """
    Partitions eligible files into the five upload phases.

    Args:
        source_root: Root of the tree being uploaded
        staging_root: Directory converted fields descriptors are written into
        known_files: Every file the walker found, ignored ones included;
            used to look up fields.js siblings without touching the disk again
        fields_options: Options passed to scripted fields functions
        convert_fields: Fields converter (defaults to Node evaluation)
        node_binary: Node executable used by the default converter
    """

    def __init__(
        self,
        source_root: str,
        staging_root: str,
        known_files: Iterable[str],
        fields_options: Optional[Sequence[str]] = None,
        convert_fields: Optional[FieldsConverter] = None,
        node_binary: str = "node",
    ) -> None:
        self.source_root = os.path.abspath(source_root)
        self.staging_root = staging_root
        self.known_files = frozenset(os.path.abspath(f) for f in known_files)
        self.fields_options = list(fields_options or [])
        self.convert_fields = convert_fields or functools.partial(
            convert_fields_js, node_binary=node_binary
        )

    def classify(self, files: Iterable[str]) -> Dict[FileCategory, List[LocalFile]]:
        """
        Classify files into phases.

        Returns:
            Mapping of every FileCategory, in processing order, to its files

        Raises:
            FieldsConversionError: If a scripted fields file fails to convert
        """
        by_category: Dict[FileCategory, List[LocalFile]] = {
            category: [] for category in CATEGORY_ORDER
        }

        for file_path in files:
            file_path = os.path.abspath(file_path)
            extension = get_ext(file_path)
            bundle_folder = find_bundle_folder(file_path)

            if bundle_folder is None:
                category = category_for_extension(extension)
                by_category[category].append(LocalFile(file_path, self.source_root, extension))
                continue

            local_file = self._classify_bundle_file(file_path, extension, bundle_folder)
            if local_file is not None:
                by_category[FileCategory.BUNDLE_ASSET].append(local_file)

        logger.info(
            "Classified files: "
            + ", ".join(f"{category.value}={len(items)}" for category, items in by_category.items())
        )
        return by_category

    def _classify_bundle_file(
        self, file_path: str, extension: str, bundle_folder: str
    ) -> Optional[LocalFile]:
        file_name = os.path.basename(file_path)

        if file_name == SCRIPTED_FIELDS_FILENAME:
            return self._convert(file_path, bundle_folder)

        if extension != "json":
            return LocalFile(file_path, self.source_root, extension, bundle_folder)

        if file_name == BUNDLE_META_FILENAME:
            return LocalFile(file_path, self.source_root, extension, bundle_folder)

        if file_name == STATIC_FIELDS_FILENAME and not self._has_scripted_sibling(file_path):
            return LocalFile(file_path, self.source_root, extension, bundle_folder)

        logger.debug(f"Skipping {file_path}: unexpected JSON file in bundle {bundle_folder}")
        return None

    def _has_scripted_sibling(self, file_path: str) -> bool:
        sibling = os.path.join(os.path.dirname(file_path), SCRIPTED_FIELDS_FILENAME)
        return sibling in self.known_files

    def _convert(self, file_path: str, bundle_folder: str) -> LocalFile:
        logger.info(
            f"Converting {bundle_folder}/{SCRIPTED_FIELDS_FILENAME} to "
            f"{bundle_folder}/{STATIC_FIELDS_FILENAME}"
        )
        try:
            output_path = self.convert_fields(
                file_path, self.fields_options, self.staging_root, self.source_root
            )
        except FieldsConversionError as error:
            handle_fields_error(error)
            raise

        return LocalFile(
            path=os.path.abspath(output_path),
            root=os.path.abspath(self.staging_root),
            extension="json",
            bundle_folder=bundle_folder,
            derived_from=file_path,
        )


def classify_files(
    files: Iterable[str],
    source_root: str,
    staging_root: str,
    known_files: Optional[Iterable[str]] = None,
    fields_options: Optional[Sequence[str]] = None,
    node_binary: str = "node",
) -> Dict[FileCategory, List[LocalFile]]:
    """
    Classify files into upload phases.

    known_files defaults to files itself.
    """
    files = list(files)
    classifier = FileClassifier(
        source_root,
        staging_root,
        known_files if known_files is not None else files,
        fields_options=fields_options,
        node_binary=node_binary,
    )
    return classifier.classify(files)
