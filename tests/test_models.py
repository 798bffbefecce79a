"""데이터 모델 테스트"""

import unittest
import sys
import os

# 상위 디렉토리의 모듈들을 import 하기 위해 경로 추가
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.models import (
    FabricRoll, FabricDefect, DefectDraft, DefectCode, FinalizeIntent, BarcodeResolution,
    CatalogItem, catalog_id, catalog_label, empty_roll_form, format_number, to_float, STATUS_COMPLETED, STATUS_REJECTED,
)


class TestFabricRoll(unittest.TestCase):
    """FabricRoll 모델 테스트"""

    def test_default_values(self):
        roll = FabricRoll()
        self.assertIsNone(roll.id)
        self.assertEqual(roll.status, "active")
        self.assertFalse(roll.is_persisted)
        self.assertFalse(roll.is_active)

    def test_from_api_converts_decimal_strings(self):
        """서버가 문자열로 준 숫자 필드를 변환한다"""
        roll = FabricRoll.from_api({
            'id': 12, 'barCode': "R-0012", 'batchNo': "B-7", 'fabricTypeId': 3,
            'width': "150.00", 'length': "82.5", 'weight': None, 'status': "active",
        })

        self.assertEqual(roll.id, 12)
        self.assertEqual(roll.bar_code, "R-0012")
        self.assertEqual(roll.width, 150.0)
        self.assertEqual(roll.length, 82.5)
        self.assertIsNone(roll.weight)
        self.assertTrue(roll.is_active)

    def test_to_form_excludes_server_fields(self):
        roll = FabricRoll(id=5, bar_code="R-5", status="active", operator_id=2)
        form = roll.to_form()

        self.assertEqual(form['barCode'], "R-5")
        self.assertNotIn('id', form)
        self.assertNotIn('status', form)
        self.assertNotIn('operatorId', form)

    def test_empty_roll_form(self):
        form = empty_roll_form()
        self.assertEqual(form['barCode'], "")
        self.assertIsNone(form['weight'])
        self.assertIsNone(form['length'])


class TestDefectModels(unittest.TestCase):
    """결함 관련 모델 테스트"""

    def test_draft_from_form_and_to_api(self):
        draft = DefectDraft.from_form({
            'defectCode': " HOLE ", 'startMeter': 12.5, 'endMeter': 12.6, 'width': 2,
            'severity': "high", 'description': "가장자리",
        })
        payload = draft.to_api(9)

        self.assertEqual(payload['fabricRollId'], 9)
        self.assertEqual(payload['defectCode'], "HOLE")
        self.assertEqual(payload['startMeter'], 12.5)
        self.assertEqual(payload['severity'], "high")

    def test_defect_from_api(self):
        defect = FabricDefect.from_api({
            'id': 1, 'fabricRollId': 9, 'defectCode': "STAIN",
            'startMeter': "10.00", 'endMeter': "10.10", 'width': "3.0", 'severity': "low",
        })
        self.assertEqual(defect.start_meter, 10.0)
        self.assertEqual(defect.end_meter, 10.1)
        self.assertEqual(defect.width, 3.0)

    def test_defect_code_label(self):
        self.assertEqual(DefectCode("HOLE", "구멍").label, "HOLE - 구멍")
        self.assertEqual(DefectCode("HOLE").label, "HOLE")


class TestHelpers(unittest.TestCase):

    def test_finalize_intent_target_status(self):
        self.assertEqual(FinalizeIntent.COMPLETE.target_status, STATUS_COMPLETED)
        self.assertEqual(FinalizeIntent.REJECT.target_status, STATUS_REJECTED)

    def test_to_float(self):
        self.assertIsNone(to_float(None))
        self.assertIsNone(to_float("  "))
        self.assertEqual(to_float(" 4.25 "), 4.25)
        with self.assertRaises(ValueError):
            to_float("abc")

    def test_catalog_label_and_id(self):
        items = [CatalogItem.from_api({'id': "3", 'name': "능직 데님", 'code': "FT-03"}),
                 CatalogItem(id=5, name="무지")]

        self.assertEqual(catalog_label(items, 3), "능직 데님 (FT-03)")
        self.assertEqual(catalog_label(items, 9), "9")
        self.assertEqual(catalog_label(items, None), "")
        self.assertEqual(catalog_id(items, "능직 데님 (FT-03)"), 3)
        self.assertEqual(catalog_id(items, "무지"), 5)
        self.assertEqual(catalog_id(items, " 9 "), 9)
        self.assertIsNone(catalog_id(items, ""))
        with self.assertRaises(ValueError):
            catalog_id(items, "없는 항목")

    def test_format_number_keeps_all_digits(self):
        self.assertEqual(format_number(1234.5678), "1234.5678")
        self.assertEqual(format_number("0.125"), "0.125")
        self.assertEqual(format_number(12.0), "12")
        self.assertEqual(format_number(None), "")
        self.assertEqual(format_number("abc"), "abc")

    def test_barcode_resolution_found(self):
        self.assertFalse(BarcodeResolution("X").found)
        self.assertTrue(BarcodeResolution("X", FabricRoll(id=1)).found)


if __name__ == '__main__':
    unittest.main()
