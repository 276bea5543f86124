"""Payload classifier - recognizes enveloped and bare chainhook bodies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from stamp_indexer.errors import MalformedPayloadError


class PayloadForm(str, Enum):
    ENVELOPED = "enveloped"  # {"event": {"apply": [...]}} from the hosted Chainhooks API
    BARE = "bare"  # {"apply": [...]} from a chainhook node


@dataclass(frozen=True)
class ClassifiedPayload:
    form: PayloadForm
    payload: dict[str, Any]  # always holds a list under "apply"

    @property
    def blocks(self) -> list[Any]:
        return self.payload["apply"]


def _has_apply_list(value: object) -> bool:
    return isinstance(value, dict) and isinstance(value.get("apply"), list)


def classify_payload(body: object) -> ClassifiedPayload:
    """Classify a decoded webhook body, unwrapping the envelope if present.

    The enveloped form wins when both shapes are present. Elements of
    ``apply`` are not inspected here.

    Raises:
        MalformedPayloadError: body matches neither form.
    """
    if isinstance(body, dict):
        event = body.get("event")
        if _has_apply_list(event):
            return ClassifiedPayload(PayloadForm.ENVELOPED, event)
        if _has_apply_list(body):
            return ClassifiedPayload(PayloadForm.BARE, body)
    raise MalformedPayloadError()
