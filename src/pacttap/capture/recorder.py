"""
On-disk stub recorder.

Engine-side half of the capture directory contract: every proxied exchange
is written as its own JSON file, named after its capture sequence number.
The recorder also remembers what it has seen so identical requests can be
answered without going upstream again ("proxyOnce").
"""

import hashlib
import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union


RECORD_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"


class StubRecorder:
    """
    Writes captured exchanges into a capture directory.

    Example:
        recorder = StubRecorder(".pacttap/data/8080/stubs")
        recorder.start()
        recorder.record("GET", "/users", "", {}, None, 200, {}, '[]')
    """

    def __init__(self, stubs_dir: str):
        self.stubs_dir = Path(stubs_dir)
        self._lock = threading.Lock()
        self._sequence = 0
        self._replies: Dict[str, Dict[str, Any]] = {}

    @property
    def count(self) -> int:
        """Number of exchanges recorded so far."""
        with self._lock:
            return self._sequence

    def start(self) -> None:
        """Create the capture directory and drop captures of earlier sessions."""
        self.stubs_dir.mkdir(parents=True, exist_ok=True)
        for path in self.stubs_dir.iterdir():
            if path.is_file() and path.suffix in (RECORD_SUFFIX, TEMP_SUFFIX):
                path.unlink()

    @staticmethod
    def request_key(method: str, path: str, query: str, body: Union[bytes, str, None]) -> str:
        """Identity of a request for replay purposes, over the whole body."""
        if isinstance(body, str):
            body = body.encode('utf-8')
        digest = hashlib.sha256(body or b"").hexdigest()
        return json.dumps([method.upper(), path, query or "", digest])

    def lookup(self, method: str, path: str, query: str, body: Union[bytes, str, None]) -> Optional[Dict[str, Any]]:
        """
        Find the recorded reply for an identical earlier request.

        Returns:
            {"status", "headers", "content"} with the full response bytes,
            or None if the request has not been seen
        """
        key = self.request_key(method, path, query, body)
        with self._lock:
            return self._replies.get(key)

    def record(
        self,
        method: str,
        path: str,
        query: str,
        request_headers: Dict[str, str],
        request_body: Optional[str],
        status: int,
        response_headers: Dict[str, str],
        response_body: Optional[str],
        request_body_truncated: bool = False,
        response_body_truncated: bool = False,
        request_content: Optional[bytes] = None,
        response_content: Optional[bytes] = None
    ) -> Dict[str, Any]:
        """
        Persist one exchange.

        The record is written to a temporary file first and renamed into
        place, so readers only ever see complete records. Bodies in the
        record may be cut at the engine's size limit; the replay copy kept
        in memory always holds the full bytes when they are given.

        Args:
            request_content: Full request body bytes, used for replay matching
            response_content: Full response body bytes, served on replay

        Returns:
            The record as written
        """
        with self._lock:
            self._sequence += 1
            sequence = self._sequence

        record = {
            "captureSequence": sequence,
            "recordedAt": datetime.now(timezone.utc).isoformat(),
            "method": method.upper(),
            "path": path,
            "query": query or "",
            "requestHeaders": request_headers,
            "requestBody": request_body,
            "requestBodyTruncated": request_body_truncated,
            "status": status,
            "responseHeaders": response_headers,
            "responseBody": response_body,
            "responseBodyTruncated": response_body_truncated,
        }

        final_path = self.stubs_dir / f"{sequence:06d}{RECORD_SUFFIX}"
        temp_path = final_path.with_name(final_path.name + TEMP_SUFFIX)
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(record, f, indent=2, ensure_ascii=False)
        os.replace(temp_path, final_path)

        if response_content is None:
            response_content = (response_body or "").encode('utf-8')
        reply = {
            "status": status,
            "headers": dict(response_headers),
            "content": response_content,
        }
        if request_content is None:
            request_content = (request_body or "").encode('utf-8')
        key = self.request_key(method, path, query, request_content)
        with self._lock:
            self._replies.setdefault(key, reply)
        return record
