"""
Tests for the engine-side stub recorder.

Tests record files, sequence numbering, proxyOnce lookups and that the
files it writes are readable by the interaction store.
"""

import json
import sys
from pathlib import Path
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pacttap.capture.recorder import StubRecorder
from pacttap.proxy.store import InteractionStore


@pytest.fixture
def recorder(tmp_path):
    recorder = StubRecorder(str(tmp_path / "data" / "3002" / "stubs"))
    recorder.start()
    return recorder


def record_get(recorder, path="/users", query="", body='[]', status=200):
    return recorder.record(
        method="get",
        path=path,
        query=query,
        request_headers={"Accept": "application/json"},
        request_body=None,
        status=status,
        response_headers={"Content-Type": "application/json"},
        response_body=body,
    )


class TestStart:
    """Test suite for preparing the capture directory."""

    def test_creates_directory(self, tmp_path):
        """Test that missing directories are created."""
        stubs = tmp_path / "a" / "b" / "stubs"

        StubRecorder(str(stubs)).start()

        assert stubs.is_dir()

    def test_clears_previous_session(self, tmp_path):
        """Test that captures left by an earlier session are removed."""
        stubs = tmp_path / "stubs"
        stubs.mkdir()
        (stubs / "000001.json").write_text("{}")
        (stubs / "000002.json.tmp").write_text("{")
        (stubs / "keep.txt").write_text("not ours")

        StubRecorder(str(stubs)).start()

        assert sorted(p.name for p in stubs.iterdir()) == ["keep.txt"]


class TestRecord:
    """Test suite for writing exchanges."""

    def test_writes_one_file_per_exchange(self, recorder):
        """Test that each exchange gets its own sequentially named file."""
        record_get(recorder, path="/a")
        record_get(recorder, path="/b")

        names = sorted(p.name for p in recorder.stubs_dir.iterdir())
        assert names == ["000001.json", "000002.json"]
        assert recorder.count == 2

    def test_record_contents(self, recorder):
        """Test the fields written for an exchange."""
        record_get(recorder, path="/users", query="page=2")

        data = json.loads((recorder.stubs_dir / "000001.json").read_text(encoding="utf-8"))
        assert data["captureSequence"] == 1
        assert data["method"] == "GET"
        assert data["path"] == "/users"
        assert data["query"] == "page=2"
        assert data["status"] == 200
        assert data["responseBody"] == "[]"
        assert "recordedAt" in data

    def test_no_temporary_files_left(self, recorder):
        """Test that the temporary file is renamed into place."""
        record_get(recorder)

        assert not list(recorder.stubs_dir.glob("*.tmp"))

    def test_records_are_readable_by_store(self, recorder):
        """Test that the store reads back what the recorder writes."""
        record_get(recorder, path="/a")
        record_get(recorder, path="/b", status=404)

        records = list(InteractionStore(str(recorder.stubs_dir)))

        assert [(r.path, r.status) for r in records] == [("/a", 200), ("/b", 404)]


class TestLookup:
    """Test suite for proxyOnce replay lookups."""

    def test_unknown_request(self, recorder):
        """Test that an unseen request has no recording."""
        assert recorder.lookup("GET", "/users", "", None) is None

    def test_identical_request_is_found(self, recorder):
        """Test that an identical request returns the first recording."""
        record_get(recorder, body='["first"]')

        reply = recorder.lookup("GET", "/users", "", None)

        assert reply is not None
        assert reply["status"] == 200
        assert reply["content"] == b'["first"]'

    def test_method_is_case_insensitive(self, recorder):
        """Test that the method comparison ignores case."""
        record_get(recorder)

        assert recorder.lookup("get", "/users", "", "") is not None

    def test_query_distinguishes_requests(self, recorder):
        """Test that a different query string is a different request."""
        record_get(recorder, query="page=1")

        assert recorder.lookup("GET", "/users", "page=2", None) is None

    def test_first_recording_wins(self, recorder):
        """Test that later recordings do not replace the first one."""
        record_get(recorder, body='["first"]')
        record_get(recorder, body='["second"]')

        assert recorder.lookup("GET", "/users", "", None)["content"] == b'["first"]'

    def test_reply_uses_full_content(self, recorder):
        """Test that replies carry the full response bytes, not the recorded text."""
        content = b"\x89PNG" + b"\x00" * 64
        recorder.record(
            method="GET",
            path="/logo.png",
            query="",
            request_headers={},
            request_body=None,
            status=200,
            response_headers={"Content-Type": "image/png"},
            response_body="[binary data: 68 bytes]",
            response_content=content,
        )

        assert recorder.lookup("GET", "/logo.png", "", b"")["content"] == content

    def test_request_matched_on_full_body(self, recorder):
        """Test that bodies sharing a recorded prefix are different requests."""
        recorder.record(
            method="POST",
            path="/upload",
            query="",
            request_headers={},
            request_body="a" * 10,
            status=201,
            response_headers={},
            response_body=None,
            request_body_truncated=True,
            request_content=b"a" * 20,
        )

        assert recorder.lookup("POST", "/upload", "", b"a" * 20) is not None
        assert recorder.lookup("POST", "/upload", "", b"a" * 10 + b"b" * 10) is None


class TestTruncation:
    """Test suite for the truncation markers in capture records."""

    def test_markers_default_to_false(self, recorder):
        """Test that complete bodies are marked as such."""
        record = record_get(recorder)

        assert record["requestBodyTruncated"] is False
        assert record["responseBodyTruncated"] is False

    def test_truncated_body_is_marked(self, recorder):
        """Test that a cut body is flagged in the file and seen by the store."""
        recorder.record(
            method="GET",
            path="/big",
            query="",
            request_headers={},
            request_body=None,
            status=200,
            response_headers={},
            response_body='{"items": [1, 2',
            response_body_truncated=True,
        )

        data = json.loads((recorder.stubs_dir / "000001.json").read_text(encoding="utf-8"))
        assert data["responseBodyTruncated"] is True
        stored = list(InteractionStore(str(recorder.stubs_dir)))[0]
        assert stored.response_body_truncated is True
