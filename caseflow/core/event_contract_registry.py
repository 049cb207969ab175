from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EventContract:
    event_name: str
    owner_service: str
    version: str
    payload_schema: str
    idempotency_key_rule: str


class EventContractError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _contract(event_name: str, idempotency_key_rule: str) -> EventContract:
    return EventContract(
        event_name=event_name,
        owner_service="caseflow",
        version="1.0.0",
        payload_schema=f"caseflow/{event_name.lower()}/v1",
        idempotency_key_rule=idempotency_key_rule,
    )


EVENT_CONTRACTS: dict[str, EventContract] = {
    "CASE_CREATED": _contract("CASE_CREATED", "event_type:aggregate_id"),
    # a case passes through the same stage more than once only with a new version
    "CASE_STAGE_CHANGED": _contract("CASE_STAGE_CHANGED", "event_type:aggregate_id:version"),
    "CASE_ASSIGNED": _contract("CASE_ASSIGNED", "event_type:aggregate_id:version"),
    "AUTO_RULE_TRIGGERED": _contract("AUTO_RULE_TRIGGERED", "event_type:aggregate_id:version:rule_id"),
}


def _default_idempotency_key(contract: EventContract, payload: dict[str, Any], aggregate_id: str) -> str:
    parts = [contract.event_name, aggregate_id]
    if "version" in contract.idempotency_key_rule:
        parts.append(str(payload.get("version", "")))
    if "rule_id" in contract.idempotency_key_rule:
        parts.append(str(payload.get("rule_id", "")))
    return ":".join(parts)


def enforce_event_contract(event_type: str, payload: dict[str, Any], aggregate_id: str) -> dict[str, Any]:
    contract = EVENT_CONTRACTS.get(event_type)
    if contract is None:
        raise EventContractError("EVENT_CONTRACT_NOT_REGISTERED", f"event_type '{event_type}' is not registered")

    requested_version = str(payload.get("event_contract_version") or contract.version)
    if requested_version != contract.version:
        raise EventContractError(
            "EVENT_CONTRACT_VERSION_MISMATCH",
            f"event_type '{event_type}' expects version {contract.version}, got {requested_version}",
        )

    idempotency_key = str(
        payload.get("idempotency_key") or _default_idempotency_key(contract, payload, aggregate_id)
    ).strip()
    if not idempotency_key:
        raise EventContractError("EVENT_IDEMPOTENCY_KEY_REQUIRED", "idempotency_key is required")

    enriched_payload = dict(payload)
    enriched_payload["idempotency_key"] = idempotency_key
    enriched_payload["event_contract"] = {
        "event_name": contract.event_name,
        "owner_service": contract.owner_service,
        "version": contract.version,
        "payload_schema": contract.payload_schema,
        "idempotency_key_rule": contract.idempotency_key_rule,
    }
    return enriched_payload
