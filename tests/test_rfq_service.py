from __future__ import annotations

import unittest
from io import BytesIO
from unittest.mock import patch

from openpyxl import Workbook, load_workbook

from queuedesk.services.identifier_service import RfqArea
from queuedesk.services.memory_kv_store import MemoryKeyValueStore
from queuedesk.services.rfq_service import (
    ConflictError,
    RfqRecord,
    create_rfq,
    export_sheets,
    find_status_column,
    get_history,
    get_rfq,
    import_workbook,
    list_rfq_ids,
    patch_rfq,
    purge_rfqs,
)
from queuedesk.services.spreadsheet_service import build_workbook


def _workbook_bytes(sheets: dict[str, list[list]]) -> bytes:
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        worksheet = workbook.create_sheet(title=title)
        for row in rows:
            worksheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class RfqCreateAndPatchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()

    def test_generated_ids_increase(self) -> None:
        ids = [create_rfq(self.store, RfqArea.SYSTEM).rfq_no for _ in range(3)]
        self.assertEqual(ids, ['RFQ(S)-000', 'RFQ(S)-001', 'RFQ(S)-002'])

    def test_new_record_defaults(self) -> None:
        record = create_rfq(self.store, RfqArea.MB)
        self.assertEqual(record.rfq_no, 'RFQ(M)-000')
        stored = self.store.hgetall('rfq:mb:RFQ(M)-000')
        self.assertEqual(stored['workflowStatus'], 'new')
        self.assertEqual(stored['assignee'], '')
        self.assertEqual(stored['source'], 'manual')
        self.assertEqual(stored['createdAt'], stored['updatedAt'])
        self.assertEqual(self.store.smembers('rfq:mb:ids'), {'RFQ(M)-000'})

    def test_duplicate_explicit_id_conflicts(self) -> None:
        create_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-000')
        with self.assertRaises(ConflictError):
            create_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-000')

    def test_manual_id_is_used_verbatim(self) -> None:
        create_rfq(self.store, RfqArea.SYSTEM, '  CUSTOM-7 ')
        self.assertEqual(get_rfq(self.store, RfqArea.SYSTEM, 'CUSTOM-7').rfq_no, 'CUSTOM-7')
        self.assertEqual(create_rfq(self.store, RfqArea.SYSTEM).rfq_no, 'RFQ(S)-000')

    def test_deleted_number_can_be_reissued(self) -> None:
        create_rfq(self.store, RfqArea.SYSTEM)
        create_rfq(self.store, RfqArea.SYSTEM)
        self.store.srem('rfq:system:ids', 'RFQ(S)-001')
        self.store.delete('rfq:system:RFQ(S)-001')
        self.assertEqual(create_rfq(self.store, RfqArea.SYSTEM).rfq_no, 'RFQ(S)-001')

    def test_patches_append_history_newest_first(self) -> None:
        rfq_no = create_rfq(self.store, RfqArea.MB).rfq_no
        patch_rfq(self.store, RfqArea.MB, rfq_no, {'workflowStatus': 'processing'})
        self.assertEqual(len(get_history(self.store, RfqArea.MB, rfq_no)), 1)

        patch_rfq(self.store, RfqArea.MB, rfq_no, {'assignee': 'Alice'})
        history = get_history(self.store, RfqArea.MB, rfq_no)
        self.assertEqual(len(history), 2)
        self.assertEqual(history[0]['updates'], {'assignee': 'Alice'})
        self.assertEqual(history[1]['updates'], {'workflowStatus': 'processing'})

    def test_created_at_is_immutable_and_updated_at_moves_forward(self) -> None:
        record = create_rfq(self.store, RfqArea.SYSTEM)
        previous = record.updated_at
        for idx in range(3):
            patched = patch_rfq(
                self.store,
                RfqArea.SYSTEM,
                record.rfq_no,
                {'createdAt': '1999-01-01T00:00:00Z', 'pmReply': f'r{idx}', 'ignored': None},
            )
            self.assertEqual(patched.created_at, record.created_at)
            self.assertGreaterEqual(patched.updated_at, previous)
            previous = patched.updated_at
        stored = get_rfq(self.store, RfqArea.SYSTEM, record.rfq_no)
        self.assertEqual(stored.pm_reply, 'r2')
        self.assertNotIn('ignored', stored.extra)

    def test_free_form_status_and_extra_fields(self) -> None:
        rfq_no = create_rfq(self.store, RfqArea.SYSTEM).rfq_no
        patched = patch_rfq(self.store, RfqArea.SYSTEM, rfq_no, {'workflowStatus': 'waiting on customer', 'Qty': 50})
        self.assertEqual(patched.workflow_status, 'waiting on customer')
        self.assertEqual(patched.extra['Qty'], '50')
        self.assertEqual(list_rfq_ids(self.store, RfqArea.SYSTEM, status='waiting on customer'), [rfq_no])
        self.assertEqual(list_rfq_ids(self.store, RfqArea.SYSTEM, status='new'), [])

    def test_patch_unknown_record(self) -> None:
        with self.assertRaises(LookupError):
            patch_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-404', {'assignee': 'x'})

    def test_history_failure_does_not_fail_patch(self) -> None:
        rfq_no = create_rfq(self.store, RfqArea.SYSTEM).rfq_no
        with patch.object(self.store, 'lpush', side_effect=ConnectionError('down')):
            with self.assertLogs('queuedesk.services.rfq_service', level='ERROR'):
                patched = patch_rfq(self.store, RfqArea.SYSTEM, rfq_no, {'assignee': 'Bob'})
        self.assertEqual(patched.assignee, 'Bob')
        self.assertEqual(get_history(self.store, RfqArea.SYSTEM, rfq_no), [])

    def test_record_round_trips_through_hash(self) -> None:
        record = RfqRecord.from_hash('X-1', {'workflowStatus': 'done', 'Customer': 'Acme'})
        self.assertEqual(record.rfq_no, 'X-1')
        self.assertEqual(record.extra, {'Customer': 'Acme'})
        self.assertEqual(record.to_hash()['rfqNo'], 'X-1')
        self.assertEqual(RfqRecord.from_hash('X-2', {}).workflow_status, 'new')

    def test_purge_removes_records_and_history(self) -> None:
        rfq_no = create_rfq(self.store, RfqArea.SYSTEM).rfq_no
        patch_rfq(self.store, RfqArea.SYSTEM, rfq_no, {'assignee': 'x'})
        create_rfq(self.store, RfqArea.MB)
        self.assertEqual(purge_rfqs(self.store), 2)
        self.assertEqual(list_rfq_ids(self.store, RfqArea.SYSTEM), [])
        self.assertEqual(get_history(self.store, RfqArea.SYSTEM, rfq_no), [])
        self.assertFalse(self.store.exists('rfq:mb:RFQ(M)-000'))


class RfqImportExportTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MemoryKeyValueStore()

    def test_status_column_matching(self) -> None:
        self.assertEqual(find_status_column(['', 'RFQ No.', 'RFQ Status\n(dropdown)']), 2)
        self.assertEqual(find_status_column(['RFQ No.', 'Status']), 1)
        self.assertIsNone(find_status_column(['RFQ No.', 'Customer']))

    def test_import_creates_updates_and_skips(self) -> None:
        existing = create_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-001')
        patch_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-001', {'assignee': 'Ivy', 'workflowStatus': 'processing'})

        content = _workbook_bytes(
            {
                'System RFQ': [
                    ['RFQ tracker 2024'],
                    ['RFQ Status', 'RFQ No.', 'Customer', 'Qty'],
                    ['', 'RFQ(S)-001', 'Acme', 10],
                    ['done', 'RFQ(S)-002', 'Globex', 5],
                    ['new', '', 'Nobody', 1],
                ],
                'MB RFQ': [
                    ['MB'],
                    ['RFQ No.', 'Customer'],
                    ['RFQ(M)-010', 'Initech'],
                ],
                'Flow': [['ignored'], ['RFQ No.'], ['RFQ(S)-999']],
            }
        )
        stats = import_workbook(self.store, content)

        self.assertEqual(vars(stats['system']), {'created': 1, 'updated': 1, 'skipped': 1})
        self.assertEqual(vars(stats['mb']), {'created': 1, 'updated': 0, 'skipped': 0})

        updated = get_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-001')
        self.assertEqual(updated.created_at, existing.created_at)
        self.assertEqual(updated.assignee, 'Ivy')
        self.assertEqual(updated.workflow_status, 'processing')
        self.assertEqual(updated.extra['Customer'], 'Acme')
        self.assertEqual(updated.extra['Qty'], '10')
        self.assertEqual(updated.source, 'excel')

        created = get_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-002')
        self.assertEqual(created.workflow_status, 'done')
        self.assertEqual(get_rfq(self.store, RfqArea.MB, 'RFQ(M)-010').workflow_status, 'new')
        self.assertNotIn('RFQ(S)-999', list_rfq_ids(self.store, RfqArea.SYSTEM))

    def test_import_counts_blank_rows_as_skipped(self) -> None:
        content = _workbook_bytes(
            {
                'System RFQ': [
                    ['RFQ tracker'],
                    ['RFQ No.', 'Customer'],
                    ['RFQ(S)-001', 'Acme'],
                    [None, None],
                    ['RFQ(S)-002', 'Globex'],
                ],
            }
        )
        stats = import_workbook(self.store, content)

        self.assertEqual(vars(stats['system']), {'created': 2, 'updated': 0, 'skipped': 1})
        self.assertEqual(list_rfq_ids(self.store, RfqArea.SYSTEM), ['RFQ(S)-001', 'RFQ(S)-002'])

    def test_import_rejects_non_workbook(self) -> None:
        with self.assertRaises(ValueError):
            import_workbook(self.store, b'not a spreadsheet')

    def test_export_orders_preferred_columns_first(self) -> None:
        create_rfq(self.store, RfqArea.SYSTEM)
        patch_rfq(self.store, RfqArea.SYSTEM, 'RFQ(S)-000', {'customer': 'Acme', 'Region': 'EU', 'assignee': 'Ivy'})

        sheets = export_sheets(self.store)
        self.assertEqual([sheet.title for sheet in sheets], ['System RFQ'])
        headers = sheets[0].headers
        self.assertEqual(headers[:4], ['RFQ No.', 'workflowStatus', 'assignee', 'Assigned PM'])
        self.assertIn('Region', headers)
        self.assertGreater(headers.index('Region'), headers.index('source'))
        row = dict(zip(headers, sheets[0].rows[0]))
        self.assertEqual(row['Customer'], 'Acme')
        self.assertEqual(row['Assigned PM'], 'Ivy')

        workbook = load_workbook(BytesIO(build_workbook(sheets)))
        self.assertEqual(workbook.sheetnames, ['System RFQ'])
        self.assertEqual(workbook['System RFQ']['A2'].value, 'RFQ(S)-000')

    def test_export_with_no_records(self) -> None:
        self.assertEqual(export_sheets(self.store), [])


if __name__ == '__main__':
    unittest.main()
