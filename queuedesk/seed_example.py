import argparse

from queuedesk.services.identifier_service import RfqArea
from queuedesk.services.provider_factory import get_kv_store
from queuedesk.services.queue_service import get_state, issue_ticket
from queuedesk.services.rfq_service import create_rfq, list_rfq_ids
from queuedesk.services.user_service import ensure_default_users, list_users

DEMO_TICKETS = [
    {'applicant': 'Amy', 'customerName': 'Acme Robotics', 'machineType': 'IPC-100'},
    {'applicant': 'Ben', 'customerName': 'Northwind', 'machineType': 'IPC-220'},
    {'applicant': 'Cleo', 'customerName': 'Contoso', 'machineType': 'MB-7'},
]


def seed(*, demo: bool = False) -> None:
    store = get_kv_store()
    ensure_default_users(store)

    if demo:
        if get_state(store).last_ticket == 0:
            for fields in DEMO_TICKETS:
                issue_ticket(store, fields)
        for area in RfqArea:
            if not list_rfq_ids(store, area):
                create_rfq(store, area)


def main() -> None:
    parser = argparse.ArgumentParser(description='Seed default users and optional demo data')
    parser.add_argument('--demo', action='store_true', help='Also issue demo tickets and one RFQ per area')
    args = parser.parse_args()

    seed(demo=args.demo)
    store = get_kv_store()
    print(f'Users: {", ".join(user.username for user in list_users(store))}')
    print(f'Last ticket: {get_state(store).last_ticket}')


if __name__ == '__main__':
    main()
