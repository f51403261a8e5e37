"""Helpers shared by the upload pipeline tests."""

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from folderpush.uploader.errors import ErrorKind, UploadError


class FakeUploadClient:
    """
    In-process stand-in for the remote upload client.

    ``failures`` maps a destination path to the errors its successive upload
    attempts raise; attempts beyond the listed errors succeed.
    """

    def __init__(self, failures: Optional[Dict[str, List[Exception]]] = None) -> None:
        self.failures = {dest: list(errors) for dest, errors in (failures or {}).items()}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def upload(self, account_id, source_path, destination_path, query_options=None):
        with self._lock:
            self.calls.append((account_id, source_path, destination_path, query_options))
            pending = self.failures.get(destination_path)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error
        return f"gs://fake/{account_id}/{destination_path}"

    @property
    def destinations(self) -> List[str]:
        return [call[2] for call in self.calls]

    def attempts(self, destination_path: str) -> int:
        return self.destinations.count(destination_path)


def transient(message: str = "503 Service Unavailable") -> UploadError:
    return UploadError(message, ErrorKind.TRANSIENT, status_code=503)


def fatal(message: str = "403 Forbidden") -> UploadError:
    return UploadError(message, ErrorKind.FATAL, status_code=403)


def make_tree(root: Path, files: Iterable[str]) -> Path:
    """Create files (relative paths) under root, each holding a little content."""
    for relative in files:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"/* {relative} */\n")
    return root


def fake_convert_fields(fields_path, options, staging_root, source_root, node_binary="node"):
    """Fields converter that skips Node and writes an empty descriptor."""
    relative_dir = Path(fields_path).parent.relative_to(source_root)
    output_dir = Path(staging_root) / relative_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    output = output_dir / "fields.json"
    output.write_text("[]")
    return str(output)


