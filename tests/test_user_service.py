from __future__ import annotations

import unittest

from queuedesk.models import Role
from queuedesk.services.memory_kv_store import MemoryKeyValueStore
from queuedesk.services.user_service import (
    create_user,
    delete_user,
    ensure_default_users,
    get_user,
    list_users,
    update_user,
    verify_user,
)


class UserServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()

    def test_default_users_are_seeded_once(self) -> None:
        ensure_default_users(self.store)
        self.assertEqual([user.username for user in list_users(self.store)], ['pmadmin', 'superadmin'])
        self.assertEqual(self.store.get('users:initialized'), 'true')

        delete_user(self.store, 'pmadmin')
        ensure_default_users(self.store)
        self.assertIsNone(get_user(self.store, 'pmadmin'))

    def test_verify_user_compares_plaintext(self) -> None:
        self.assertEqual(verify_user(self.store, 'superadmin', 'Eunice').role, Role.SUPER)
        self.assertIsNone(verify_user(self.store, 'superadmin', 'eunice'))
        self.assertIsNone(verify_user(self.store, 'nobody', 'Eunice'))

    def test_create_validates_role(self) -> None:
        user = create_user(self.store, username='sam', password='pw:with:colons', role='sales')
        self.assertEqual(user.role, Role.SALES)
        self.assertEqual(verify_user(self.store, 'sam', 'pw:with:colons').username, 'sam')
        with self.assertRaises(ValueError):
            create_user(self.store, username='x', password='y', role='admin')
        with self.assertRaises(ValueError):
            create_user(self.store, username='', password='y', role='pm')

    def test_update_rules(self) -> None:
        create_user(self.store, username='pat', password='old', role='pm')
        user = update_user(self.store, 'pat', password='new', role='sales')
        self.assertEqual(user.role, Role.SALES)
        self.assertEqual(get_user(self.store, 'pat').password, 'new')

        kept = update_user(self.store, 'pat', role='bogus')
        self.assertEqual(kept.role, Role.SALES)
        self.assertEqual(kept.password, 'new')

        with self.assertRaises(ValueError):
            update_user(self.store, 'superadmin', password='changed')
        self.assertEqual(update_user(self.store, 'superadmin', role='super').password, 'Eunice')
        with self.assertRaises(LookupError):
            update_user(self.store, 'ghost', role='pm')


if __name__ == '__main__':
    unittest.main()
