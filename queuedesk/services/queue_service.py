from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from queuedesk.services.date_service import day_diff, export_day_diff, export_local_date, iso_now
from queuedesk.services.identifier_service import QUEUE_LAST_KEY, allocate_ticket_number
from queuedesk.services.kv_store import KeyValueStore

QUEUE_CURRENT_KEY = 'queue:current'
QUEUE_NEXT_KEY = 'queue:next'
QUEUE_TICKETS_KEY = 'queue:tickets'

DESCRIPTIVE_FIELDS = (
    'applicant',
    'customerName',
    'customerRequirement',
    'machineType',
    'startDate',
    'expectedCompletionDate',
    'fcst',
    'massProductionDate',
)

TICKET_EXPORT_COLUMNS = [
    ('Number', 10),
    ('Applicant', 15),
    ('Customer Name', 20),
    ('Customer Requirement', 30),
    ('Machine Type', 20),
    ('Start Date', 15),
    ('Expected Completion Date', 15),
    ('Application Date', 15),
    ('Days Waited', 12),
    ('Days Processing', 12),
    ('Days Since Reply', 12),
    ('FCST', 12),
    ('Mass Production Date', 15),
    ('Status', 12),
    ('Note', 30),
    ('PM', 12),
]


class TicketStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    REPLIED = 'replied'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


@dataclass
class QueueState:
    current_number: int = 0
    last_ticket: int = 0
    next_number: int | None = None

    @property
    def upcoming_number(self) -> int:
        return self.next_number if self.next_number is not None else self.current_number + 1

    @property
    def can_call_next(self) -> bool:
        return self.upcoming_number <= self.last_ticket

    def is_current(self, ticket_number: int) -> bool:
        return ticket_number == self.current_number

    def is_called(self, ticket_number: int) -> bool:
        return ticket_number <= self.current_number

    def to_dict(self) -> dict:
        return {
            'currentNumber': self.current_number,
            'lastTicket': self.last_ticket,
            'nextNumber': self.next_number,
            'upcomingNumber': self.upcoming_number,
            'canCallNext': self.can_call_next,
        }


def ticket_key(ticket_number: int) -> str:
    return f'queue:ticket:{ticket_number}'


def _as_int(raw: str | None) -> int | None:
    if raw is None or raw == '':
        return None
    try:
        return int(float(raw))
    except ValueError:
        return None


def parse_status(value: str) -> TicketStatus:
    try:
        return TicketStatus(str(value).strip())
    except ValueError as exc:
        allowed = ', '.join(status.value for status in TicketStatus)
        raise ValueError(f'Status must be one of: {allowed}') from exc


def get_state(store: KeyValueStore) -> QueueState:
    return QueueState(
        current_number=_as_int(store.get(QUEUE_CURRENT_KEY)) or 0,
        last_ticket=_as_int(store.get(QUEUE_LAST_KEY)) or 0,
        next_number=_as_int(store.get(QUEUE_NEXT_KEY)),
    )


def set_state(
    store: KeyValueStore,
    *,
    current_number: int | None = None,
    next_number: int | None = None,
    clear_next: bool = False,
) -> QueueState:
    # Administrative override: values are stored verbatim, even past the last ticket.
    if current_number is None and next_number is None and not clear_next:
        raise ValueError('Provide currentNumber or nextNumber')
    if clear_next and next_number is not None:
        raise ValueError('nextNumber cannot be set and cleared at once')
    updates: dict[str, int] = {}
    if current_number is not None:
        updates[QUEUE_CURRENT_KEY] = int(current_number)
    if next_number is not None:
        updates[QUEUE_NEXT_KEY] = int(next_number)
    if updates:
        store.mset(updates)
    if clear_next:
        store.delete(QUEUE_NEXT_KEY)
    return get_state(store)


def call_next(store: KeyValueStore) -> QueueState:
    state = get_state(store)
    if not state.can_call_next:
        raise ValueError(f'No ticket to call: next number {state.upcoming_number} exceeds last ticket {state.last_ticket}')
    store.set(QUEUE_CURRENT_KEY, state.upcoming_number)
    store.delete(QUEUE_NEXT_KEY)
    return get_state(store)


def issue_ticket(store: KeyValueStore, fields: dict | None = None) -> int:
    ticket_number = allocate_ticket_number(store)
    record = {
        field: str(value).strip()
        for field, value in (fields or {}).items()
        if field in DESCRIPTIVE_FIELDS and value is not None
    }
    record.update(
        {
            'status': TicketStatus.PENDING.value,
            'note': '',
            'assignee': '',
            'createdAt': iso_now(),
        }
    )
    store.hset(ticket_key(ticket_number), record)
    store.rpush(QUEUE_TICKETS_KEY, str(ticket_number))
    return ticket_number


def get_ticket(store: KeyValueStore, ticket_number: int) -> dict[str, str]:
    data = store.hgetall(ticket_key(ticket_number))
    if not data:
        raise LookupError(f'Ticket #{ticket_number} not found')
    return data


def update_ticket(
    store: KeyValueStore,
    ticket_number: int,
    *,
    status: str | None = None,
    note: str | None = None,
    assignee: str | None = None,
) -> dict[str, str]:
    current = get_ticket(store, ticket_number)
    updates: dict[str, str] = {}
    if status is not None:
        new_status = parse_status(status)
        updates['status'] = new_status.value
        if new_status == TicketStatus.PROCESSING and not current.get('processingAt'):
            updates['processingAt'] = iso_now()
        if new_status == TicketStatus.REPLIED and not current.get('replyDate'):
            updates['replyDate'] = iso_now()
    if note is not None:
        updates['note'] = str(note)
    if assignee is not None:
        updates['assignee'] = str(assignee)
    if updates:
        store.hset(ticket_key(ticket_number), updates)
    return {**current, **updates}


def delete_ticket(store: KeyValueStore, ticket_number: int) -> None:
    # Pointers are left alone so numbers are never handed out twice.
    get_ticket(store, ticket_number)
    store.delete(ticket_key(ticket_number))
    store.lrem(QUEUE_TICKETS_KEY, str(ticket_number))


def ticket_numbers(store: KeyValueStore) -> list[int]:
    numbers = []
    for raw in store.lrange(QUEUE_TICKETS_KEY, 0, -1):
        number = _as_int(raw)
        if number is not None:
            numbers.append(number)
    return numbers


def ticket_view(ticket_number: int, data: dict[str, str], state: QueueState, now: datetime | None = None) -> dict:
    view = {field: data.get(field, '') for field in DESCRIPTIVE_FIELDS}
    view.update(
        {
            'ticketNumber': ticket_number,
            'status': data.get('status') or TicketStatus.PENDING.value,
            'note': data.get('note', ''),
            'assignee': data.get('assignee', ''),
            'createdAt': data.get('createdAt', ''),
            'processingAt': data.get('processingAt', ''),
            'replyDate': data.get('replyDate', ''),
            'isCurrent': state.is_current(ticket_number),
            'isCalled': state.is_called(ticket_number),
            'daysWaited': day_diff(data.get('createdAt'), now),
            'daysProcessing': day_diff(data.get('processingAt'), now),
            'daysSinceReply': day_diff(data.get('replyDate'), now),
        }
    )
    return view


def list_tickets(store: KeyValueStore, *, limit: int | None = None, now: datetime | None = None) -> list[dict]:
    state = get_state(store)
    numbers = list(reversed(ticket_numbers(store)))
    if limit is not None:
        numbers = numbers[: max(0, limit)]
    tickets = []
    for number in numbers:
        data = store.hgetall(ticket_key(number))
        if data:
            tickets.append(ticket_view(number, data, state, now))
    return tickets


def waiting_count(tickets: list[dict]) -> int:
    return sum(1 for ticket in tickets if ticket.get('status') == TicketStatus.PENDING.value)


def reset_queue(store: KeyValueStore) -> int:
    numbers = ticket_numbers(store)
    if numbers:
        store.delete(*[ticket_key(number) for number in numbers])
    store.delete(QUEUE_TICKETS_KEY)
    store.mset({QUEUE_CURRENT_KEY: 0, QUEUE_LAST_KEY: 0, QUEUE_NEXT_KEY: 1})
    return len(numbers)


def export_ticket_rows(store: KeyValueStore, now: datetime | None = None) -> list[list]:
    rows = []
    for number in ticket_numbers(store):
        data = store.hgetall(ticket_key(number))
        created_at = data.get('createdAt', '')
        rows.append(
            [
                number,
                data.get('applicant', ''),
                data.get('customerName', ''),
                data.get('customerRequirement', ''),
                data.get('machineType', ''),
                data.get('startDate', ''),
                data.get('expectedCompletionDate', ''),
                export_local_date(created_at),
                export_day_diff(created_at, now),
                export_day_diff(data.get('processingAt'), now),
                export_day_diff(data.get('replyDate'), now),
                data.get('fcst', ''),
                data.get('massProductionDate', ''),
                data.get('status') or TicketStatus.PENDING.value,
                data.get('note', ''),
                data.get('assignee', ''),
            ]
        )
    return rows
