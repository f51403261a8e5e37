"""Shared fixtures for upload pipeline tests."""

from pathlib import Path

import pytest

from tests.helpers import FakeUploadClient, make_tree


@pytest.fixture
def fake_client() -> FakeUploadClient:
    return FakeUploadClient()


@pytest.fixture
def bundle_tree(tmp_path: Path) -> Path:
    """The reference tree: a script, a template and one bundle folder."""
    return make_tree(
        tmp_path / "site",
        [
            "a.js",
            "b.module/meta.json",
            "b.module/fields.js",
            "b.module/fields.json",
            "c.html",
        ],
    )
