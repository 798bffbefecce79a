"""결함 목록 관리 테스트"""

import unittest
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.ledger import DefectLedger
from core.models import DefectDraft, FabricRoll, format_number
from fakes import FakeQualityApi
from utils.exceptions import InvalidTransitionError, NotFoundError, ValidationError


class TestDefectLedger(unittest.TestCase):

    def setUp(self):
        self.api = FakeQualityApi()
        self.roll = self.api.add_roll(barCode="R-1")
        self.ledger = DefectLedger(self.api, default_span=0.1)

    def draft(self, **overrides):
        values = dict(defect_code="HOLE", start_meter=10.0, end_meter=10.5, width=2.0, severity="medium")
        values.update(overrides)
        return DefectDraft(**values)

    def test_add_defect_returns_server_list(self):
        entries = self.ledger.add_defect(self.roll, self.draft())

        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].defect_code, "HOLE")
        self.assertEqual(entries[0].fabric_roll_id, self.roll.id)
        # 목록 반영은 load에서만 한다
        self.assertIsNone(self.ledger.roll_id)
        self.assertEqual(self.ledger.entries, [])

    def test_load_replaces_entries(self):
        entries = self.ledger.add_defect(self.roll, self.draft())
        self.ledger.load(self.roll.id, entries)

        self.assertEqual(self.ledger.roll_id, self.roll.id)
        self.assertEqual(self.ledger.entries, entries)
        self.ledger.clear()
        self.assertIsNone(self.ledger.roll_id)
        self.assertEqual(self.ledger.entries, [])

    def test_entries_keep_server_order(self):
        self.ledger.add_defect(self.roll, self.draft(start_meter=30.0, end_meter=30.1))
        self.ledger.add_defect(self.roll, self.draft(start_meter=5.0, end_meter=5.1))

        self.assertEqual([e.start_meter for e in self.ledger.fetch(self.roll.id)], [30.0, 5.0])

    def test_validation_rules(self):
        cases = [
            (dict(defect_code=" "), 'defectCode'),
            (dict(start_meter=-1.0), 'startMeter'),
            (dict(end_meter=9.0), 'endMeter'),
            (dict(width=0), 'width'),
            (dict(severity="critical"), 'severity'),
            (dict(start_meter="abc"), 'startMeter'),
            (dict(end_meter=""), 'endMeter'),
        ]
        for overrides, field_name in cases:
            with self.subTest(field=field_name, overrides=overrides):
                with self.assertRaises(ValidationError) as ctx:
                    self.ledger.validate(self.draft(**overrides))
                self.assertEqual(ctx.exception.field, field_name)

    def test_zero_length_defect_allowed(self):
        valid = self.ledger.validate(self.draft(start_meter="12", end_meter="12"))
        self.assertEqual((valid.start_meter, valid.end_meter), (12.0, 12.0))

    def test_invalid_defect_not_sent(self):
        with self.assertRaises(ValidationError):
            self.ledger.add_defect(self.roll, self.draft(width=-1))
        self.assertEqual(self.api.count('create_defect'), 0)

    def test_terminal_roll_rejects_defects(self):
        completed = FabricRoll(id=self.roll.id, bar_code="R-1", status="completed")
        with self.assertRaises(InvalidTransitionError):
            self.ledger.add_defect(completed, self.draft())
        with self.assertRaises(InvalidTransitionError):
            self.ledger.add_defect(FabricRoll(), self.draft())

    def test_remove_defect(self):
        self.ledger.load(self.roll.id, self.ledger.add_defect(self.roll, self.draft()))
        defect_id = self.ledger.entries[0].id

        entries = self.ledger.remove_defect(self.roll.id, defect_id)
        self.ledger.load(self.roll.id, entries)

        self.assertEqual(entries, [])
        self.assertIsNone(self.ledger.find(defect_id))

    def test_remove_missing_defect_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.ledger.remove_defect(self.roll.id, 12345)

    def test_seed_at_position(self):
        draft = self.ledger.seed_at_position(42.3)
        self.assertEqual(draft.start_meter, 42.3)
        self.assertAlmostEqual(draft.end_meter, 42.4)

        for meter in (0.0, None):
            with self.assertRaises(ValidationError):
                self.ledger.seed_at_position(meter)

    def test_seeded_position_not_rounded(self):
        draft = self.ledger.seed_at_position(1234.5678)

        self.assertEqual(draft.start_meter, 1234.5678)
        self.assertEqual(format_number(draft.start_meter), "1234.5678")


if __name__ == '__main__':
    unittest.main()
