import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from caseflow.models.base_models import EventOutbox
from caseflow.core.middleware import get_current_tenant_id
from caseflow.core.event_contract_registry import enforce_event_contract
from caseflow.core.observability import metrics_registry


class EventPublisher:
    @staticmethod
    async def publish(
        session: AsyncSession,
        event_type: str,
        aggregate_type: str,
        aggregate_id: str,
        payload: dict,
        tenant_id: str | None = None,
    ) -> EventOutbox:
        """
        Inserts an event into the outbox table within the SAME transaction
        as the business logic updates. Falls back to the request tenant when
        tenant_id is not given.
        """
        safe_payload = enforce_event_contract(event_type=event_type, payload=payload, aggregate_id=aggregate_id)

        tid = tenant_id if tenant_id is not None else get_current_tenant_id()
        outbox_entry = EventOutbox(
            id=str(uuid.uuid4()),
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            payload=safe_payload,
            status="PENDING",
            tenant_id=tid or None,
        )
        session.add(outbox_entry)
        metrics_registry.inc("caseflow_event_outbox_written_total")
        return outbox_entry
