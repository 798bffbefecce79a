"""바코드 조회 테스트"""

import unittest
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.barcode import BarcodeResolver
from fakes import DeferredTaskRunner, FakeQualityApi
from utils.exceptions import IntegrationError, ValidationError


class TestBarcodeResolver(unittest.TestCase):

    def setUp(self):
        self.api = FakeQualityApi()
        self.runner = DeferredTaskRunner()
        self.resolver = BarcodeResolver(self.api, self.runner)

    def test_existing_roll_found(self):
        self.api.add_roll(barCode="R-100")

        resolution = self.resolver.resolve("  R-100 ")

        self.assertTrue(resolution.found)
        self.assertEqual(resolution.roll.bar_code, "R-100")

    def test_same_barcode_resolves_to_same_roll(self):
        roll = self.api.add_roll(barCode="R-100")
        self.api.add_roll(barCode="R-200")

        first = self.resolver.resolve("R-100")
        second = self.resolver.resolve(" R-100")

        self.assertEqual(first.roll.id, roll.id)
        self.assertEqual(second.roll.id, first.roll.id)

    def test_unknown_barcode_is_new_roll(self):
        resolution = self.resolver.resolve("R-404")

        self.assertFalse(resolution.found)
        self.assertEqual(resolution.barcode, "R-404")

    def test_empty_barcode_rejected_without_request(self):
        with self.assertRaises(ValidationError):
            self.resolver.resolve("   ")
        self.assertEqual(self.api.count('get_roll_by_barcode'), 0)

    def test_server_error_propagates(self):
        self.api.offline = True
        with self.assertRaises(IntegrationError):
            self.resolver.resolve("R-1")

    def test_only_one_lookup_in_flight(self):
        results = []
        self.assertTrue(self.resolver.resolve_async("R-1", results.append, results.append))
        self.assertFalse(self.resolver.resolve_async("R-2", results.append, results.append))
        self.assertEqual(len(self.runner.pending), 1)

        self.runner.run_all()

        self.assertFalse(self.resolver.in_flight)
        self.assertEqual(results[0].barcode, "R-1")
        self.assertTrue(self.resolver.resolve_async("R-2", results.append, results.append))

    def test_failed_lookup_releases_slot(self):
        errors = []
        self.api.offline = True
        self.resolver.resolve_async("R-1", lambda r: None, errors.append)
        self.runner.run_all()

        self.assertIsInstance(errors[0], IntegrationError)
        self.assertFalse(self.resolver.in_flight)


if __name__ == '__main__':
    unittest.main()
