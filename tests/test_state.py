"""
Tests for the last-run status file.

These tests verify:
- Summaries built from a RunReport
- Save/load round trip through the lock directory
- Missing and corrupt files degrade to "never run"
"""

import json

from syncreeper.mirror.models import RunReport, SyncResult
from syncreeper.mirror.state import STATUS_FILE_NAME, SyncStatus


def make_report() -> RunReport:
    report = RunReport(results=[
        SyncResult.cloned("octocat/a"),
        SyncResult.updated("octocat/b", 4),
        SyncResult.error("octocat/c", "Update failed: network unreachable"),
    ])
    report.finish()
    return report


class TestFromReport:

    def test_summary(self):
        status = SyncStatus.from_report(make_report())

        assert status.has_run
        assert status.total == 3
        assert status.counts == {"cloned": 1, "updated": 1, "unchanged": 0, "error": 1}
        assert status.errors == [
            {"repository": "octocat/c", "message": "Update failed: network unreachable"}
        ]
        assert status.last_run_finished_iso is not None


class TestPersistence:

    def test_save_and_load(self, tmp_path):
        SyncStatus.from_report(make_report()).save(tmp_path)

        loaded = SyncStatus.load(tmp_path)
        assert loaded.total == 3
        assert loaded.counts["updated"] == 1
        assert loaded.errors[0]["repository"] == "octocat/c"

    def test_file_location_and_format(self, tmp_path):
        SyncStatus.from_report(make_report()).save(tmp_path)

        path = tmp_path / STATUS_FILE_NAME
        data = json.loads(path.read_text())
        assert data["total"] == 3
        assert not (tmp_path / ".syncreeper-status.tmp").exists()

    def test_save_creates_directory(self, tmp_path):
        target = tmp_path / "not" / "yet"
        SyncStatus().save(target)
        assert SyncStatus.path_for(target).exists()

    def test_missing_file(self, tmp_path):
        status = SyncStatus.load(tmp_path)
        assert status.has_run is False
        assert status.counts == {}

    def test_corrupt_file(self, tmp_path):
        (tmp_path / STATUS_FILE_NAME).write_text("{not json")

        status = SyncStatus.load(tmp_path)
        assert status.has_run is False
