from __future__ import annotations

import json
import unittest
from unittest.mock import patch

from queuedesk.services.audit_service import (
    LOG_KEY,
    LogEntry,
    add_log,
    get_recent_logs,
    log_count,
    logs_to_csv,
    record_event,
)
from queuedesk.services.memory_kv_store import MemoryKeyValueStore

DAY_MS = 24 * 60 * 60 * 1000


class AuditServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()

    def test_recent_logs_are_newest_first(self) -> None:
        add_log(self.store, LogEntry(ts='2024-01-01T00:00:00Z', username='a', role='pm', action='login'), now_ms=1000)
        add_log(self.store, LogEntry(ts='2024-01-02T00:00:00Z', username='b', role='pm', action='next'), now_ms=2000)
        actions = [entry.action for entry in get_recent_logs(self.store)]
        self.assertEqual(actions, ['next', 'login'])
        self.assertEqual(log_count(self.store), 2)

    def test_entries_past_retention_are_pruned_on_write(self) -> None:
        now_ms = 100 * DAY_MS
        add_log(self.store, LogEntry(ts='old', username='a', role='pm', action='old'), now_ms=now_ms - 61 * DAY_MS)
        add_log(self.store, LogEntry(ts='recent', username='a', role='pm', action='recent'), now_ms=now_ms - 59 * DAY_MS)
        add_log(self.store, LogEntry(ts='now', username='a', role='pm', action='now'), now_ms=now_ms)
        self.assertEqual([entry.action for entry in get_recent_logs(self.store)], ['now', 'recent'])

    def test_detail_is_omitted_when_missing(self) -> None:
        add_log(self.store, LogEntry(ts='t', username='a', role='pm', action='login'), now_ms=1)
        member = self.store.zrange(LOG_KEY, 0, -1)[0]
        self.assertNotIn('detail', json.loads(member))

    def test_undecodable_members_are_skipped(self) -> None:
        self.store.zadd(LOG_KEY, 1, 'not json')
        add_log(self.store, LogEntry(ts='t', username='a', role='pm', action='login'), now_ms=2)
        self.assertEqual([entry.action for entry in get_recent_logs(self.store)], ['login'])

    def test_record_event_swallows_store_failures(self) -> None:
        with patch.object(self.store, 'zadd', side_effect=ConnectionError('down')):
            with self.assertLogs('queuedesk.services.audit_service', level='ERROR'):
                self.assertFalse(record_event(self.store, username='a', role='pm', action='next'))
        self.assertTrue(record_event(self.store, username='a', role='pm', action='next', detail='#1'))
        self.assertEqual(get_recent_logs(self.store)[0].detail, '#1')

    def test_csv_replaces_commas(self) -> None:
        text = logs_to_csv([LogEntry(ts='t', username='a,b', role='pm', action='user:update', detail='x, y')])
        lines = text.splitlines()
        self.assertEqual(lines[0], 'ts,username,role,action,detail')
        self.assertEqual(lines[1], 't,a b,pm,user:update,x  y')


if __name__ == '__main__':
    unittest.main()
