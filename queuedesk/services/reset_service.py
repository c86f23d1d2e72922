from __future__ import annotations

from dataclasses import dataclass

from queuedesk.services.kv_store import KeyValueStore
from queuedesk.services.queue_service import reset_queue
from queuedesk.services.rfq_service import purge_rfqs


@dataclass(frozen=True)
class ResetSummary:
    tickets_removed: int
    rfqs_removed: int


def reset_system(store: KeyValueStore) -> ResetSummary:
    """Clear every ticket and RFQ and rewind the queue pointers. Users and audit logs are kept."""
    tickets_removed = reset_queue(store)
    rfqs_removed = purge_rfqs(store)
    return ResetSummary(tickets_removed=tickets_removed, rfqs_removed=rfqs_removed)
