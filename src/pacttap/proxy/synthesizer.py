"""
Contract synthesizer.

Turns captured interactions into a Pact document. Identical exchanges are
collapsed into one interaction; the remaining interactions keep the order in
which they were first captured so the contract reads like the session did.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .. import __version__
from ..common.utils import safe_json_parse, strip_volatile_headers
from .store import RecordedInteraction


logger = logging.getLogger("pacttap.synthesizer")

PACT_SPECIFICATION_VERSION = "2.0.0"


@dataclass
class Interaction:
    """One deduplicated request/response pair of a contract."""

    description: str
    request: Dict[str, Any]
    response: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "request": self.request,
            "response": self.response,
        }


@dataclass
class Contract:
    """A consumer contract (Pact document)."""

    consumer: str
    provider: str
    interactions: List[Interaction] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consumer": {"name": self.consumer},
            "provider": {"name": self.provider},
            "interactions": [i.to_dict() for i in self.interactions],
            "metadata": self.metadata,
        }


def _opaque_body(body: Any) -> Any:
    """JSON text becomes a JSON value; anything else is kept as-is."""
    if isinstance(body, str):
        return safe_json_parse(body, default=body)
    return body


def interaction_key(record: RecordedInteraction) -> str:
    """
    Structural key of a captured exchange.

    Two records with the same key produce the same contract interaction.
    Covers method, path, query, request body, response status, response body
    and the stable response headers.
    """
    return json.dumps(
        [
            record.method,
            record.path,
            record.query,
            _opaque_body(record.request_body),
            record.status,
            _opaque_body(record.response_body),
            strip_volatile_headers(record.response_headers),
        ],
        sort_keys=True,
        ensure_ascii=False,
    )


def build_request(record: RecordedInteraction) -> Dict[str, Any]:
    request: Dict[str, Any] = {"method": record.method, "path": record.path}
    if record.query:
        request["query"] = record.query

    headers = strip_volatile_headers(record.request_headers)
    if headers:
        request["headers"] = headers

    if record.request_body_truncated:
        logger.warning(f"Request body of {record.method} {record.path} was truncated when captured, leaving it out")
    elif record.request_body not in (None, ""):
        request["body"] = _opaque_body(record.request_body)
    return request


def build_response(record: RecordedInteraction) -> Dict[str, Any]:
    response: Dict[str, Any] = {"status": record.status}

    headers = strip_volatile_headers(record.response_headers)
    if headers:
        response["headers"] = headers

    if record.response_body_truncated:
        logger.warning(f"Response body of {record.method} {record.path} was truncated when captured, leaving it out")
    elif record.response_body not in (None, ""):
        response["body"] = _opaque_body(record.response_body)
    return response


def describe(record: RecordedInteraction, taken: Set[str]) -> str:
    """
    Description for a new interaction, unique within the contract.

    Uses "<METHOD> <path>", suffixed with " (2)", " (3)", ... when an earlier
    interaction already took that description.
    """
    base = f"{record.method} {record.path}"
    description = base
    counter = 2
    while description in taken:
        description = f"{base} ({counter})"
        counter += 1
    return description


def build_metadata(generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "pactSpecification": {"version": PACT_SPECIFICATION_VERSION},
        "pacttap": {
            "version": __version__,
            "generatedAt": generated_at.isoformat(),
        },
    }


def synthesize(
    records: Iterable[RecordedInteraction],
    consumer: str,
    provider: str,
    generated_at: Optional[datetime] = None
) -> Tuple[Contract, bool]:
    """
    Build a contract from captured interactions.

    Args:
        records: Captured interactions in capture order
        consumer: Canonical name of the consumer service
        provider: Canonical name of the provider service
        generated_at: Timestamp for the metadata (defaults to now)

    Returns:
        Tuple of (contract, has_interactions). An empty capture still yields
        a well-formed contract, with has_interactions False.
    """
    seen: Set[str] = set()
    descriptions: Set[str] = set()
    interactions: List[Interaction] = []

    for record in records:
        key = interaction_key(record)
        if key in seen:
            continue
        seen.add(key)

        description = describe(record, descriptions)
        descriptions.add(description)
        interactions.append(Interaction(
            description=description,
            request=build_request(record),
            response=build_response(record),
        ))

    contract = Contract(
        consumer=consumer,
        provider=provider,
        interactions=interactions,
        metadata=build_metadata(generated_at),
    )
    return contract, bool(interactions)
