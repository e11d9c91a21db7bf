"""
Interaction store reader.

Reads the recording engine's capture directory. The engine writes one JSON
file per captured exchange; this module turns them back into
RecordedInteraction objects in capture order.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..common.errors import MalformedRecord, ReadError


logger = logging.getLogger("pacttap.store")

RECORD_SUFFIX = ".json"


@dataclass(frozen=True)
class RecordedInteraction:
    """One request/response exchange as captured by the engine."""

    method: str
    path: str
    status: int
    capture_sequence: int
    query: str = ""
    request_headers: Dict[str, str] = field(default_factory=dict)
    request_body: Optional[str] = None
    response_headers: Dict[str, str] = field(default_factory=dict)
    response_body: Optional[str] = None
    request_body_truncated: bool = False
    response_body_truncated: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'RecordedInteraction':
        """
        Create a RecordedInteraction from an engine capture record.

        Raises:
            MalformedRecord: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise MalformedRecord(f"expected a JSON object, got {type(data).__name__}")

        missing = [k for k in ("method", "path", "status", "captureSequence") if k not in data]
        if missing:
            raise MalformedRecord(f"missing fields: {', '.join(missing)}")

        method = data["method"]
        path = data["path"]
        status = data["status"]
        sequence = data["captureSequence"]
        if not isinstance(method, str) or not method:
            raise MalformedRecord("'method' must be a non-empty string")
        if not isinstance(path, str):
            raise MalformedRecord("'path' must be a string")
        if isinstance(status, bool) or not isinstance(status, int):
            raise MalformedRecord("'status' must be an integer")
        if isinstance(sequence, bool) or not isinstance(sequence, int):
            raise MalformedRecord("'captureSequence' must be an integer")

        request_headers = data.get("requestHeaders") or {}
        response_headers = data.get("responseHeaders") or {}
        if not isinstance(request_headers, dict) or not isinstance(response_headers, dict):
            raise MalformedRecord("headers must be JSON objects")

        query = data.get("query") or ""
        if not isinstance(query, str):
            raise MalformedRecord("'query' must be a string")

        request_truncated = data.get("requestBodyTruncated", False)
        response_truncated = data.get("responseBodyTruncated", False)
        if not isinstance(request_truncated, bool) or not isinstance(response_truncated, bool):
            raise MalformedRecord("truncation markers must be booleans")

        return cls(
            method=method.upper(),
            path=path,
            status=status,
            capture_sequence=sequence,
            query=query,
            request_headers={str(k): str(v) for k, v in request_headers.items()},
            request_body=data.get("requestBody"),
            response_headers={str(k): str(v) for k, v in response_headers.items()},
            response_body=data.get("responseBody"),
            request_body_truncated=request_truncated,
            response_body_truncated=response_truncated,
        )


class InteractionStore:
    """
    Lazy, restartable view of a capture directory.

    Every iteration re-reads the directory, so a store object can be kept
    for the whole session and iterated once per synthesis pass.

    Example:
        store = InteractionStore(".pacttap/data/8080/stubs")
        for record in store:
            print(record.method, record.path)
    """

    def __init__(self, stubs_dir: str):
        self.stubs_dir = Path(stubs_dir)
        self.skipped = 0

    def __iter__(self) -> Iterator[RecordedInteraction]:
        return self._read()

    def _list_record_files(self) -> List[Path]:
        if not self.stubs_dir.exists():
            return []

        try:
            return [
                p for p in self.stubs_dir.iterdir()
                if p.suffix == RECORD_SUFFIX and p.is_file()
            ]
        except OSError as e:
            raise ReadError(f"cannot read capture directory {self.stubs_dir}: {e}") from e

    def _read(self) -> Iterator[RecordedInteraction]:
        self.skipped = 0
        loaded: List[Tuple[int, str, RecordedInteraction]] = []

        for path in self._list_record_files():
            try:
                record = self._load_record(path)
            except MalformedRecord as e:
                self.skipped += 1
                logger.warning(f"Skipping malformed capture record {path.name}: {e}")
                continue
            loaded.append((record.capture_sequence, path.name, record))

        loaded.sort(key=lambda item: (item[0], item[1]))
        for _, _, record in loaded:
            yield record

    @staticmethod
    def _load_record(path: Path) -> RecordedInteraction:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            # removed between listing and reading
            raise MalformedRecord(f"record disappeared: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedRecord(f"invalid JSON: {e}") from e
        except OSError as e:
            raise ReadError(f"cannot read capture record {path}: {e}") from e

        return RecordedInteraction.from_dict(data)
