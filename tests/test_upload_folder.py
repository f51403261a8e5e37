"""
Unit tests for the folder upload pipeline.

Uploads go to an in-process FakeUploadClient and scripted fields conversion
is replaced with a converter that does not need Node.
"""

import os
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from folderpush.uploader.errors import ErrorKind, FieldsConversionError, UploadError
from folderpush.uploader.scheduler import UploadScheduler
from folderpush.uploader.upload_folder import (
    UploadFolderOptions,
    UploadOutcome,
    UploadResultType,
    get_upload_query_values,
    has_upload_errors,
    select_eligible_files,
    upload_folder,
)
from tests.helpers import FakeUploadClient, fake_convert_fields, fatal, make_tree, transient

EXPECTED_DESTINATIONS = {
    "site/b.module/fields.json",
    "site/b.module/meta.json",
    "site/a.js",
    "site/c.html",
}


@pytest.fixture(autouse=True)
def no_node():
    with patch("folderpush.uploader.classifier.convert_fields_js", fake_convert_fields):
        yield


def _serial():
    return UploadFolderOptions(concurrency=1)


class TimedUploadClient(FakeUploadClient):
    """Records when each upload started and finished."""

    def __init__(self, failures=None) -> None:
        super().__init__(failures)
        self.timings = {}

    def upload(self, account_id, source_path, destination_path, query_options=None):
        started = time.monotonic()
        time.sleep(0.005 * (len(destination_path) % 4 + 1))
        try:
            return super().upload(account_id, source_path, destination_path, query_options)
        finally:
            with self._lock:
                self.timings[destination_path] = (started, time.monotonic())


def _phase_of(destination_path: str) -> int:
    if ".module/" in destination_path:
        return 1
    extension = destination_path.rsplit(".", 1)[-1]
    return {"js": 2, "css": 2, "html": 3, "json": 4}.get(extension, 0)


class TestUploadFolder:
    """Test the two-pass upload."""

    def test_all_uploads_succeed(self, bundle_tree: Path, fake_client: FakeUploadClient):
        results = upload_folder("123", str(bundle_tree), "site", client=fake_client)

        assert results == []
        assert not has_upload_errors(results)
        assert set(fake_client.destinations) == EXPECTED_DESTINATIONS
        assert len(fake_client.calls) == 4

    def test_transient_failure_recovered_on_retry(self, bundle_tree: Path):
        client = FakeUploadClient({"site/a.js": [transient()]})

        results = upload_folder("123", str(bundle_tree), "site", client=client)

        assert results == [UploadOutcome(UploadResultType.SUCCESS, str(bundle_tree / "a.js"))]
        assert not has_upload_errors(results)
        assert client.attempts("site/a.js") == 2
        assert client.attempts("site/c.html") == 1

    def test_transient_failure_twice_is_reported(self, bundle_tree: Path):
        error = transient("503 twice")
        client = FakeUploadClient({"site/c.html": [transient(), error]})

        results = upload_folder("123", str(bundle_tree), "site", client=client)

        assert len(results) == 1
        assert results[0].result_type is UploadResultType.FAILURE
        assert results[0].file == str(bundle_tree / "c.html")
        assert results[0].error is error
        assert has_upload_errors(results)
        assert client.attempts("site/c.html") == 2

    def test_only_failed_files_are_retried(self, bundle_tree: Path):
        client = FakeUploadClient(
            {"site/a.js": [transient()], "site/b.module/meta.json": [transient(), transient()]}
        )

        results = upload_folder("123", str(bundle_tree), "site", client=client)

        by_file = {result.file: result.result_type for result in results}
        assert by_file == {
            str(bundle_tree / "a.js"): UploadResultType.SUCCESS,
            str(bundle_tree / "b.module" / "meta.json"): UploadResultType.FAILURE,
        }
        assert len(client.calls) == 6

    def test_fatal_error_aborts_run(self, bundle_tree: Path):
        client = FakeUploadClient({"site/a.js": [fatal()]})

        with pytest.raises(UploadError) as exc_info:
            upload_folder("123", str(bundle_tree), "site", _serial(), client=client)

        assert exc_info.value.kind is ErrorKind.FATAL
        assert "site/c.html" not in client.destinations
        assert client.attempts("site/a.js") == 1

    def test_fatal_error_on_retry_aborts_run(self, bundle_tree: Path):
        client = FakeUploadClient({"site/a.js": [transient(), fatal("401 Unauthorized")]})

        with pytest.raises(UploadError, match="401"):
            upload_folder("123", str(bundle_tree), "site", client=client)

        assert client.attempts("site/a.js") == 2

    def test_unexpected_exception_is_fatal(self, bundle_tree: Path):
        client = FakeUploadClient({"site/a.js": [KeyError("bug")]})

        with pytest.raises(KeyError):
            upload_folder("123", str(bundle_tree), "site", client=client)

    def test_phases_upload_in_order(self, bundle_tree: Path, fake_client: FakeUploadClient):
        make_tree(bundle_tree, ["img/logo.png", "data/menu.json"])

        upload_folder("123", str(bundle_tree), "site", _serial(), client=fake_client)

        assert fake_client.destinations == [
            "site/img/logo.png",
            "site/b.module/fields.json",
            "site/b.module/meta.json",
            "site/a.js",
            "site/c.html",
            "site/data/menu.json",
        ]

    def test_retry_pass_runs_after_every_phase(self, bundle_tree: Path):
        client = FakeUploadClient({"site/b.module/meta.json": [transient()]})

        upload_folder("123", str(bundle_tree), "site", _serial(), client=client)

        assert client.destinations[-1] == "site/b.module/meta.json"
        assert client.destinations.index("site/c.html") < len(client.destinations) - 1

    def test_excluded_and_ignored_files_never_upload(self, bundle_tree: Path, fake_client: FakeUploadClient):
        make_tree(
            bundle_tree,
            ["node_modules/lib/index.js", "build.py", "debug.log", "drafts/page.html", ".env"],
        )
        options = UploadFolderOptions(ignore_patterns=["/drafts"])

        upload_folder("123", str(bundle_tree), "site", options, client=fake_client)

        assert set(fake_client.destinations) == EXPECTED_DESTINATIONS

    def test_scripted_fields_uploaded_from_staging(self, bundle_tree: Path, fake_client: FakeUploadClient):
        upload_folder("123", str(bundle_tree), "site", client=fake_client)

        [source] = [call[1] for call in fake_client.calls if call[2] == "site/b.module/fields.json"]
        assert not source.startswith(str(bundle_tree))
        assert os.path.basename(source) == "fields.json"
        # staging directory is removed once the run ends
        assert not os.path.exists(source)

    def test_failed_converted_fields_reported_as_script(self, bundle_tree: Path):
        client = FakeUploadClient({"site/b.module/fields.json": [transient(), transient()]})

        [result] = upload_folder("123", str(bundle_tree), "site", client=client)

        assert result.result_type is UploadResultType.FAILURE
        assert result.file == str(bundle_tree / "b.module" / "fields.js")

    def test_fields_conversion_failure_aborts_before_uploading(
        self, bundle_tree: Path, fake_client: FakeUploadClient
    ):
        converter = MagicMock(side_effect=FieldsConversionError("SyntaxError", "fields.js"))

        with patch("folderpush.uploader.classifier.convert_fields_js", converter):
            with pytest.raises(FieldsConversionError):
                upload_folder("123", str(bundle_tree), "site", client=fake_client)

        assert fake_client.calls == []

    def test_query_values_follow_mode(self, bundle_tree: Path, fake_client: FakeUploadClient):
        upload_folder("123", str(bundle_tree), "site", UploadFolderOptions(mode="draft"), client=fake_client)

        assert {call[3]["buildMode"] for call in fake_client.calls} == {"DRAFT"}
        assert {call[0] for call in fake_client.calls} == {"123"}

    def test_shared_scheduler_is_left_running(self, bundle_tree: Path, fake_client: FakeUploadClient):
        with UploadScheduler(max_concurrency=2) as scheduler:
            upload_folder("123", str(bundle_tree), "site", client=fake_client, scheduler=scheduler)
            upload_folder("123", str(bundle_tree), "other", client=fake_client, scheduler=scheduler)

        assert len(fake_client.calls) == 8

    def test_missing_source_directory(self, tmp_path: Path, fake_client: FakeUploadClient):
        with pytest.raises(NotADirectoryError):
            upload_folder("123", str(tmp_path / "missing"), "site", client=fake_client)

    @patch("folderpush.uploader.upload_folder.get_config")
    @patch("folderpush.uploader.upload_folder.GCSUploadClient")
    def test_default_client_from_environment(self, mock_client_class, mock_get_config, bundle_tree: Path):
        fake = FakeUploadClient()
        mock_client_class.from_config.return_value = fake

        upload_folder("123", str(bundle_tree), "site")

        mock_client_class.from_config.assert_called_once_with(mock_get_config.return_value)
        assert len(fake.calls) == 4


class TestHelpers:
    """Test option validation and file selection."""

    def test_query_values(self):
        assert get_upload_query_values("publish") == {"buildMode": "PUBLISH"}
        assert get_upload_query_values("draft") == {"buildMode": "DRAFT"}

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="mode"):
            UploadFolderOptions(mode="staging")

    def test_select_eligible_files(self, tmp_path: Path):
        files = [str(tmp_path / name) for name in ["a.js", "b.exe", "c.log", "d.html"]]

        assert select_eligible_files(files, str(tmp_path)) == [
            str(tmp_path / "a.js"),
            str(tmp_path / "d.html"),
        ]

    def test_has_upload_errors(self):
        assert not has_upload_errors([])
        assert not has_upload_errors([UploadOutcome(UploadResultType.SUCCESS, "a.js")])
        assert has_upload_errors(
            [
                UploadOutcome(UploadResultType.SUCCESS, "a.js"),
                UploadOutcome(UploadResultType.FAILURE, "b.js", transient()),
            ]
        )


class TestConcurrentPhases:
    """Test phase ordering and fatal errors with several uploads in flight."""

    def test_phase_drains_before_next_starts(self, bundle_tree: Path):
        make_tree(
            bundle_tree,
            [
                "img/1.png",
                "img/2.png",
                "img/3.png",
                "b.module/module.css",
                "b.module/module.html",
                "css/main.css",
                "js/app.js",
                "js/vendor.js",
                "pages/home.html",
                "pages/about.html",
                "data/menu.json",
                "data/footer.json",
            ],
        )
        client = TimedUploadClient()

        upload_folder("123", str(bundle_tree), "site", UploadFolderOptions(concurrency=4), client=client)

        phases = {}
        for destination, (started, finished) in client.timings.items():
            phases.setdefault(_phase_of(destination), []).append((started, finished))

        assert sorted(phases) == [0, 1, 2, 3, 4]
        for phase in range(4):
            last_finish = max(finished for _, finished in phases[phase])
            first_start = min(started for started, _ in phases[phase + 1])
            assert last_finish <= first_start, f"phase {phase + 1} started before phase {phase} drained"

    def test_staged_fields_readable_by_running_upload_after_fatal_error(self, bundle_tree: Path):
        fields_upload_started = threading.Event()
        readable = []

        class SlowFieldsClient(FakeUploadClient):
            def upload(self, account_id, source_path, destination_path, query_options=None):
                if destination_path.endswith("fields.json"):
                    fields_upload_started.set()
                    time.sleep(0.1)
                    readable.append(os.path.exists(source_path))
                elif destination_path.endswith("meta.json"):
                    fields_upload_started.wait(1)
                return super().upload(account_id, source_path, destination_path, query_options)

        client = SlowFieldsClient({"site/b.module/meta.json": [fatal()]})

        with pytest.raises(UploadError):
            upload_folder("123", str(bundle_tree), "site", UploadFolderOptions(concurrency=2), client=client)

        assert readable == [True]
