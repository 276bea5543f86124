"""Contract-call extractor - walks chainhook blocks and yields uniform call matches.

Two upstream transaction encodings are understood:

* inline kind (chainhook node): ``metadata.kind.type == "ContractCall"`` with
  ``metadata.kind.data`` holding ``contract_identifier``, ``method`` and ``args``.
* operations list (hosted Chainhooks API): ``metadata.type == "contract_call"``
  with the call described by the first matching entry in ``operations``.

Each transaction is first classified into one of the variants below, then
converted. Anything that is not a call to the target contract is skipped.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Union

from stamp_indexer.chainhook.payload import ClassifiedPayload
from stamp_indexer.models.records import ContractCallMatch

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineContractCall:
    """Encoding A: call details inline under ``metadata.kind.data``."""

    tx_id: str
    metadata: dict[str, Any]
    data: dict[str, Any]


@dataclass(frozen=True)
class OperationsContractCall:
    """Encoding B: call details on a ``contract_call`` entry of ``operations``."""

    tx_id: str
    metadata: dict[str, Any]
    operation: dict[str, Any]


@dataclass(frozen=True)
class UnrecognizedTransaction:
    tx_id: str
    reason: str


ContractCallSource = Union[InlineContractCall, OperationsContractCall, UnrecognizedTransaction]


def as_string(value: object) -> str:
    """Coerce a loosely-typed JSON value to a string ("" for null)."""
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def _dict(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _tx_id(tx: dict[str, Any]) -> str:
    return as_string(_dict(tx.get("transaction_identifier")).get("hash"))


def classify_transaction(tx: object, contract_identifier: str) -> ContractCallSource:
    """Decide which encoding a transaction uses and whether it targets our contract."""
    if not isinstance(tx, dict):
        return UnrecognizedTransaction("", "not_an_object")

    tx_id = _tx_id(tx)
    metadata = _dict(tx.get("metadata"))

    kind = _dict(metadata.get("kind"))
    if kind.get("type") == "ContractCall":
        data = _dict(kind.get("data"))
        if data.get("contract_identifier") != contract_identifier:
            return UnrecognizedTransaction(tx_id, "contract_mismatch")
        return InlineContractCall(tx_id, metadata, data)

    if metadata.get("type") != "contract_call":
        return UnrecognizedTransaction(tx_id, "not_a_contract_call")

    operations = tx.get("operations")
    if not isinstance(operations, list):
        return UnrecognizedTransaction(tx_id, "no_operations")

    for op in operations:
        if not isinstance(op, dict) or op.get("type") != "contract_call":
            continue
        op_meta = _dict(op.get("metadata"))
        if op_meta.get("contract_identifier") == contract_identifier:
            if not isinstance(op_meta.get("function_name"), str):
                return UnrecognizedTransaction(tx_id, "no_function_name")
            return OperationsContractCall(tx_id, metadata, op)

    return UnrecognizedTransaction(tx_id, "contract_mismatch")


def _operation_args(raw: object) -> tuple[str, ...]:
    if isinstance(raw, list):
        out = []
        for arg in raw:
            if isinstance(arg, dict) and isinstance(arg.get("repr"), str):
                out.append(arg["repr"])
            else:
                out.append(as_string(arg))
        return tuple(out)
    if isinstance(raw, str):
        return (raw,)
    return ()


def _operation_result(raw: object) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("repr"), str):
        return raw["repr"]
    return ""


def to_match(source: ContractCallSource, block_height: int, timestamp: int) -> ContractCallMatch | None:
    """Convert a classified transaction into a ContractCallMatch."""
    if isinstance(source, InlineContractCall):
        raw_args = source.data.get("args")
        args = tuple(as_string(a) for a in raw_args) if isinstance(raw_args, list) else ()
        return ContractCallMatch(
            tx_id=source.tx_id,
            block_height=block_height,
            timestamp=timestamp,
            sender=as_string(source.metadata.get("sender")),
            method=as_string(source.data.get("method")),
            args=args,
            result=as_string(source.metadata.get("result")),
            success=source.metadata.get("success") is True,
        )

    if isinstance(source, OperationsContractCall):
        op_meta = _dict(source.operation.get("metadata"))
        sender = source.metadata.get("sender_address")
        return ContractCallMatch(
            tx_id=source.tx_id,
            block_height=block_height,
            timestamp=timestamp,
            sender=sender if isinstance(sender, str) else "",
            method=op_meta["function_name"],
            args=_operation_args(op_meta.get("args")),
            result=_operation_result(source.metadata.get("result")),
            success=source.metadata.get("status") == "success",
        )

    return None


def _int_field(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


class ContractCallExtractor:
    """Extracts calls to a single contract from classified chainhook payloads."""

    def __init__(self, contract_identifier: str) -> None:
        self._contract_identifier = contract_identifier

    @property
    def contract_identifier(self) -> str:
        return self._contract_identifier

    def extract(self, payload: ClassifiedPayload) -> list[ContractCallMatch]:
        """Return matches in block order, then transaction order. At most one per tx."""
        matches: list[ContractCallMatch] = []
        for block in payload.blocks:
            if not isinstance(block, dict):
                continue
            block_height = _int_field(_dict(block.get("block_identifier")).get("index"))
            timestamp = _int_field(block.get("timestamp"))

            transactions = block.get("transactions")
            if not isinstance(transactions, list):
                continue

            for tx in transactions:
                source = classify_transaction(tx, self._contract_identifier)
                match = to_match(source, block_height, timestamp)
                if match is None:
                    if isinstance(source, UnrecognizedTransaction):
                        log.debug(
                            "Skipping tx %s at block %d: %s",
                            source.tx_id or "?", block_height, source.reason,
                        )
                    continue
                matches.append(match)
        return matches
