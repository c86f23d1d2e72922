from __future__ import annotations

import re
from enum import Enum

from queuedesk.services.kv_store import KeyValueStore

QUEUE_LAST_KEY = 'queue:last'


class RfqArea(str, Enum):
    SYSTEM = 'system'
    MB = 'mb'


RFQ_PREFIXES = {
    RfqArea.SYSTEM: 'RFQ(S)-',
    RfqArea.MB: 'RFQ(M)-',
}
RFQ_NUMBER_WIDTH = 3
RFQ_PATTERNS = {area: re.compile(r'^' + re.escape(prefix) + r'(\d+)$') for area, prefix in RFQ_PREFIXES.items()}


def rfq_ids_key(area: RfqArea) -> str:
    return f'rfq:{area.value}:ids'


def format_rfq_no(area: RfqArea, number: int) -> str:
    return f'{RFQ_PREFIXES[area]}{number:0{RFQ_NUMBER_WIDTH}d}'


def parse_rfq_number(area: RfqArea, rfq_no: str) -> int | None:
    match = RFQ_PATTERNS[area].match(rfq_no)
    return int(match.group(1)) if match else None


def next_rfq_no(store: KeyValueStore, area: RfqArea) -> str:
    # Nothing is reserved here; creation rejects duplicates.
    highest = -1
    for rfq_no in store.smembers(rfq_ids_key(area)):
        number = parse_rfq_number(area, rfq_no)
        if number is not None and number > highest:
            highest = number
    return format_rfq_no(area, highest + 1)


def allocate_ticket_number(store: KeyValueStore) -> int:
    return store.incr(QUEUE_LAST_KEY)
