"""검사 작업 흐름 통합 테스트"""

import unittest
import tempfile
import shutil
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import ConfigManager
from core.models import FinalizeIntent, CHANNEL_LENGTH, CHANNEL_WEIGHT
from core.workflow import InspectionWorkflow
from core.workflow_state import TAB_DEFECTS, TAB_ROLL_INFO, VIEW_CLOSED
from fakes import (
    DeferredTaskRunner, FakeQualityApi, FakeScheduler, RecordingLogger, RecordingNotifier,
    SyncTaskRunner, roll_status,
)

DEFECT_FORM = {'defectCode': "HOLE", 'startMeter': 10, 'endMeter': 10.5, 'width': 5, 'severity': "medium"}


class WorkflowTestBase(unittest.TestCase):

    def make_workflow(self, runner=None):
        self.api = FakeQualityApi()
        self.scheduler = FakeScheduler()
        self.runner = runner or SyncTaskRunner()
        self.notifier = RecordingNotifier()
        self.logger = RecordingLogger()
        self.workflow = InspectionWorkflow(self.api, self.scheduler, self.runner, self.notifier,
                                           event_logger=self.logger, operator_id=9)
        return self.workflow

    def create_roll(self, barcode="B-0002"):
        self.workflow.scan_barcode(barcode)
        self.workflow.submit_roll_form({'batchNo': "L1", 'fabricTypeId': 3, 'width': 150})
        return self.workflow.roll


class TestInspectionScenarios(WorkflowTestBase):

    def setUp(self):
        self.make_workflow()

    def test_unknown_barcode_prefills_new_roll_form(self):
        self.assertTrue(self.workflow.scan_barcode("B-0001"))

        self.assertIsNone(self.workflow.roll)
        self.assertEqual(self.workflow.form['barCode'], "B-0001")
        self.assertEqual(self.workflow.state.active_tab, TAB_ROLL_INFO)
        self.assertFalse(self.workflow.state.defects_tab_enabled)
        self.assertIn('BARCODE_NOT_FOUND', self.logger.types())

    def test_create_roll_enables_defects_tab(self):
        roll = self.create_roll()

        self.assertEqual(roll.status, "active")
        self.assertEqual(roll.bar_code, "B-0002")
        self.assertEqual(roll.width, 150.0)
        self.assertEqual(roll.operator_id, 9)
        self.assertTrue(self.workflow.state.defects_tab_enabled)
        self.assertEqual(self.workflow.state.active_tab, TAB_DEFECTS)
        self.assertEqual(roll_status(self.api, roll.id), "active")

    def test_add_defect_to_active_roll(self):
        self.create_roll()
        self.assertTrue(self.workflow.open_defect_dialog())

        self.assertTrue(self.workflow.submit_defect(DEFECT_FORM))

        self.assertEqual(len(self.workflow.defects), 1)
        defect = self.workflow.defects[0]
        self.assertEqual((defect.defect_code, defect.start_meter, defect.end_meter, defect.width, defect.severity),
                         ("HOLE", 10.0, 10.5, 5.0, "medium"))
        self.assertFalse(self.workflow.state.defect_dialog_open)
        self.assertEqual(self.workflow.state.pending_defect_mutations, 0)

    def test_inverted_defect_range_rejected(self):
        self.create_roll()
        self.workflow.open_defect_dialog()

        ok = self.workflow.submit_defect(dict(DEFECT_FORM, startMeter=12, endMeter=11))

        self.assertFalse(ok)
        self.assertEqual(self.workflow.defects, [])
        self.assertEqual(self.api.count('create_defect'), 0)
        self.assertTrue(self.workflow.state.defect_dialog_open)
        self.assertEqual(self.notifier.levels()[-1], 'warning')

    def test_reject_roll_blocks_further_defects(self):
        roll = self.create_roll()

        self.assertTrue(self.workflow.request_finalize(FinalizeIntent.REJECT))
        self.assertTrue(self.workflow.confirm_finalize())

        self.assertEqual(roll_status(self.api, roll.id), "rejected")
        self.assertEqual(self.workflow.state.view, VIEW_CLOSED)
        self.assertEqual(self.workflow.state.last_outcome, "rejected")
        self.assertIn('ROLL_REJECTED', self.logger.types())

        self.assertFalse(self.workflow.submit_defect(DEFECT_FORM))
        self.assertEqual(self.api.count('create_defect'), 0)

    def test_manual_weight_when_disconnected(self):
        self.workflow.scan_barcode("B-0003")
        self.assertFalse(self.workflow.poller.is_connected(CHANNEL_WEIGHT))

        self.assertEqual(self.workflow.apply_manual(CHANNEL_WEIGHT, "12.4"), 12.4)

        self.assertEqual(self.workflow.form['weight'], 12.4)
        self.assertIn('MANUAL_MEASUREMENT', self.logger.types())


class TestWorkflowBehaviour(WorkflowTestBase):

    def setUp(self):
        self.make_workflow()

    def test_existing_roll_loaded_with_defects(self):
        roll = self.api.add_roll(barCode="R-10", batchNo="L9")
        self.api.create_defect({'fabricRollId': roll.id, 'defectCode': "STAIN",
                                'startMeter': 1, 'endMeter': 1.1, 'width': 1, 'severity': "low"})

        self.workflow.scan_barcode("R-10")

        self.assertEqual(self.workflow.roll.id, roll.id)
        self.assertEqual(self.workflow.form['batchNo'], "L9")
        self.assertEqual(self.workflow.state.active_tab, TAB_DEFECTS)
        self.assertEqual([d.defect_code for d in self.workflow.defects], ["STAIN"])

    def test_rescanning_barcode_opens_same_roll(self):
        roll = self.api.add_roll(barCode="R-10")

        self.workflow.scan_barcode("R-10")
        first_id = self.workflow.roll.id
        self.workflow.start_new_inspection()
        self.workflow.scan_barcode("R-10")

        self.assertEqual(first_id, roll.id)
        self.assertEqual(self.workflow.roll.id, first_id)
        self.assertEqual(len(self.api.rolls), 1)

    def test_empty_barcode_not_sent(self):
        self.assertFalse(self.workflow.scan_barcode("   "))
        self.assertEqual(self.api.count('get_roll_by_barcode'), 0)
        self.assertEqual(self.notifier.levels(), ['warning'])

    def test_scan_failure_notifies_error(self):
        self.api.offline = True

        self.workflow.scan_barcode("R-1")

        self.assertFalse(self.workflow.state.is_scanning)
        self.assertEqual(self.notifier.levels()[-1], 'error')
        self.assertIn('OPERATION_FAILED', self.logger.types())

    def test_missing_required_field_not_sent(self):
        self.workflow.scan_barcode("R-1")

        self.assertFalse(self.workflow.submit_roll_form({'batchNo': ""}))

        self.assertEqual(self.api.count('create_roll'), 0)
        self.assertTrue(self.workflow.state.is_new_roll)

    def test_update_existing_roll(self):
        self.create_roll()

        self.assertTrue(self.workflow.submit_roll_form({'color': "navy"}))

        self.assertEqual(self.workflow.roll.color, "navy")
        self.assertEqual(self.workflow.roll.status, "active")
        self.assertIn('ROLL_UPDATED', self.logger.types())

    def test_device_reading_fills_form(self):
        self.api.device_status = {'weightConnected': True, 'meterConnected': True}
        self.api.values = {CHANNEL_WEIGHT: 125.5, CHANNEL_LENGTH: 80.0}
        self.workflow.start()
        fields = []
        self.workflow.add_field_listener(lambda name, value: fields.append((name, value)))

        self.scheduler.advance(1000)

        self.assertEqual(self.workflow.form['weight'], 125.5)
        self.assertEqual(self.workflow.form['length'], 80.0)
        self.assertIn(('weight', 125.5), fields)
        self.assertIn('DEVICE_CONNECTED', self.logger.types())

    def test_zero_reading_does_not_clear_field(self):
        self.api.device_status = {'weightConnected': True, 'meterConnected': False}
        self.workflow.start()
        self.workflow.apply_manual(CHANNEL_WEIGHT, "20")

        self.scheduler.advance(1000)

        self.assertEqual(self.workflow.form['weight'], 20.0)

    def test_disconnect_notifies_operator(self):
        self.api.device_status = {'weightConnected': True, 'meterConnected': False}
        self.workflow.start()
        self.api.device_status = {'weightConnected': False, 'meterConnected': False}

        self.scheduler.advance(5000)

        self.assertEqual(self.notifier.messages[-1][2], 'warning')
        self.assertIn('DEVICE_DISCONNECTED', self.logger.types())

    def test_defect_at_current_meter_position(self):
        self.create_roll()
        self.workflow.apply_manual(CHANNEL_LENGTH, "42.3")

        self.assertTrue(self.workflow.add_defect_at_current_position())

        self.assertTrue(self.workflow.state.defect_dialog_open)
        self.assertEqual(self.workflow.defect_draft.start_meter, 42.3)
        self.assertAlmostEqual(self.workflow.defect_draft.end_meter, 42.4)

    def test_defect_at_position_needs_meter_value(self):
        self.create_roll()
        self.assertFalse(self.workflow.add_defect_at_current_position())
        self.assertFalse(self.workflow.state.defect_dialog_open)

    def test_delete_defect_with_confirmation(self):
        self.create_roll()
        self.workflow.submit_defect(DEFECT_FORM)
        defect_id = self.workflow.defects[0].id

        self.workflow.request_delete_defect(defect_id)
        self.workflow.cancel_delete_defect()
        self.assertEqual(len(self.workflow.defects), 1)

        self.workflow.request_delete_defect(defect_id)
        self.assertTrue(self.workflow.confirm_delete_defect())
        self.assertEqual(self.workflow.defects, [])
        self.assertIn('DEFECT_REMOVED', self.logger.types())

    def test_delete_already_removed_defect_refreshes_list(self):
        self.create_roll()
        self.workflow.submit_defect(DEFECT_FORM)
        defect_id = self.workflow.defects[0].id
        del self.api.defects[defect_id]

        self.workflow.request_delete_defect(defect_id)
        self.workflow.confirm_delete_defect()

        self.assertEqual(self.workflow.defects, [])
        self.assertEqual(self.workflow.state.pending_defect_mutations, 0)
        self.assertEqual(self.notifier.levels()[-1], 'error')

    def test_finalize_needs_confirmation(self):
        roll = self.create_roll()
        self.workflow.request_finalize(FinalizeIntent.COMPLETE)
        self.workflow.cancel_finalize()

        self.assertFalse(self.workflow.confirm_finalize())
        self.assertEqual(roll_status(self.api, roll.id), "active")

    def test_finalize_failure_keeps_roll_active(self):
        roll = self.create_roll()
        self.api.fail_status_update = True
        self.workflow.request_finalize(FinalizeIntent.COMPLETE)

        self.workflow.confirm_finalize()

        self.assertEqual(roll_status(self.api, roll.id), "active")
        self.assertIs(self.workflow.state.finalize_intent, FinalizeIntent.COMPLETE)
        self.assertEqual(self.notifier.levels()[-1], 'error')

        self.api.fail_status_update = False
        self.assertTrue(self.workflow.confirm_finalize())
        self.assertEqual(roll_status(self.api, roll.id), "completed")

    def test_completed_roll_rejects_edits(self):
        self.create_roll()
        self.workflow.request_finalize(FinalizeIntent.COMPLETE)
        self.workflow.confirm_finalize()

        self.assertIsNone(self.workflow.apply_manual(CHANNEL_WEIGHT, "10"))
        self.assertFalse(self.workflow.submit_roll_form({'color': "red"}))
        self.assertFalse(self.workflow.request_finalize(FinalizeIntent.REJECT))
        self.assertEqual(self.api.count('update_roll_status'), 1)

    def test_finalize_stops_polling_and_new_inspection_restarts(self):
        self.create_roll()
        self.workflow.start()
        self.workflow.request_finalize(FinalizeIntent.COMPLETE)
        self.workflow.confirm_finalize()
        self.assertFalse(self.workflow.poller.running)

        self.workflow.start_new_inspection()

        self.assertTrue(self.workflow.poller.running)
        self.assertIsNone(self.workflow.roll)
        self.assertEqual(self.workflow.form['barCode'], "")
        self.assertEqual(self.workflow.state.active_tab, TAB_ROLL_INFO)

    def test_load_defect_codes(self):
        self.workflow.load_defect_codes()
        self.assertEqual([code.code for code in self.workflow.defect_codes], ["HOLE", "STAIN"])

    def test_start_loads_fabric_types_and_machines(self):
        self.workflow.start()

        self.assertEqual([item.id for item in self.workflow.fabric_types], [1, 3])
        self.assertEqual([item.label for item in self.workflow.machines], ["직기 7호 (M-07)"])
        self.workflow.shutdown()

    def test_catalog_failure_reported(self):
        self.api.offline = True
        self.workflow.load_catalogs()

        self.assertEqual(self.workflow.fabric_types, [])
        self.assertEqual([title for title, _, _ in self.notifier.messages],
                         ["원단 종류 조회 실패", "설비 목록 조회 실패"])
        self.assertEqual(self.notifier.levels(), ['error', 'error'])


class TestWorkflowConcurrency(WorkflowTestBase):
    """응답이 늦게 도착하는 상황"""

    def setUp(self):
        self.make_workflow(DeferredTaskRunner())

    def create_roll(self, barcode="B-0002"):
        self.workflow.scan_barcode(barcode)
        self.runner.run_all()
        self.workflow.submit_roll_form({'batchNo': "L1", 'fabricTypeId': 3})
        self.runner.run_all()
        return self.workflow.roll

    def test_second_scan_ignored_while_resolving(self):
        self.assertTrue(self.workflow.scan_barcode("R-1"))
        self.assertFalse(self.workflow.scan_barcode("R-2"))
        self.runner.run_all()

        self.assertEqual(self.workflow.form['barCode'], "R-1")
        self.assertEqual(self.api.count('get_roll_by_barcode'), 1)

    def test_finalize_waits_for_pending_defect_save(self):
        roll = self.create_roll()
        self.workflow.submit_defect(DEFECT_FORM)
        self.assertEqual(self.workflow.state.pending_defect_mutations, 1)

        self.assertFalse(self.workflow.request_finalize(FinalizeIntent.COMPLETE))
        self.runner.run_all()
        self.assertTrue(self.workflow.request_finalize(FinalizeIntent.COMPLETE))
        self.workflow.confirm_finalize()
        self.runner.run_all()

        self.assertEqual(roll_status(self.api, roll.id), "completed")
        self.assertEqual(len(self.api.defects), 1)

    def test_defect_changes_refused_while_finalizing(self):
        self.create_roll()
        self.workflow.request_finalize(FinalizeIntent.REJECT)
        self.workflow.confirm_finalize()
        self.assertTrue(self.workflow.state.is_finalizing)

        self.assertFalse(self.workflow.submit_defect(DEFECT_FORM))
        self.assertFalse(self.workflow.open_defect_dialog())
        self.runner.run_all()
        self.assertEqual(self.api.defects, {})

    def test_double_save_ignored(self):
        self.workflow.scan_barcode("R-1")
        self.runner.run_all()
        self.assertTrue(self.workflow.submit_roll_form({'batchNo': "L1", 'fabricTypeId': 3}))
        self.assertFalse(self.workflow.submit_roll_form())
        self.runner.run_all()

        self.assertEqual(self.api.count('create_roll'), 1)

    def test_scan_refused_while_defect_save_pending(self):
        roll = self.create_roll()
        other = self.api.add_roll(barCode="R-2")
        self.workflow.submit_defect(DEFECT_FORM)

        self.assertFalse(self.workflow.scan_barcode("R-2"))
        self.assertEqual(self.notifier.levels()[-1], 'warning')
        self.runner.run_all()

        self.assertEqual(self.workflow.roll.id, roll.id)
        self.assertEqual([d.fabric_roll_id for d in self.workflow.defects], [roll.id])
        self.assertTrue(self.workflow.scan_barcode("R-2"))
        self.runner.run_all()
        self.assertEqual(self.workflow.roll.id, other.id)
        self.assertEqual(self.workflow.defects, [])

    def test_new_inspection_refused_while_defect_save_pending(self):
        roll = self.create_roll()
        self.workflow.submit_defect(DEFECT_FORM)

        self.assertFalse(self.workflow.start_new_inspection())
        self.runner.run_all()

        self.assertEqual(self.workflow.roll.id, roll.id)
        self.assertEqual(len(self.workflow.defects), 1)
        self.assertTrue(self.workflow.start_new_inspection())
        self.assertIsNone(self.workflow.roll)
        self.assertEqual(self.workflow.defects, [])

    def test_late_defect_list_of_previous_roll_dropped(self):
        first = self.api.add_roll(barCode="R-1")
        second = self.api.add_roll(barCode="R-2")
        self.api.create_defect({'fabricRollId': first.id, 'defectCode': "HOLE",
                                'startMeter': 1, 'endMeter': 1.1, 'width': 1, 'severity': "low"})

        self.workflow.scan_barcode("R-1")
        self.runner.run_next()
        # 첫 롤의 결함 목록 조회가 끝나기 전에 다음 롤을 스캔
        self.assertTrue(self.workflow.scan_barcode("R-2"))
        self.runner.run_at(-1)
        self.runner.run_all()

        self.assertEqual(self.workflow.roll.id, second.id)
        self.assertEqual(self.workflow.ledger.roll_id, second.id)
        self.assertEqual(self.workflow.defects, [])

    def test_late_defect_list_dropped_after_new_inspection(self):
        roll = self.api.add_roll(barCode="R-1")
        self.api.create_defect({'fabricRollId': roll.id, 'defectCode': "HOLE",
                                'startMeter': 1, 'endMeter': 1.1, 'width': 1, 'severity': "low"})
        self.workflow.scan_barcode("R-1")
        self.runner.run_next()

        self.workflow.start_new_inspection()
        self.runner.run_all()

        self.assertIsNone(self.workflow.roll)
        self.assertIsNone(self.workflow.ledger.roll_id)
        self.assertEqual(self.workflow.defects, [])


class TestSessionPersistence(WorkflowTestBase):

    def setUp(self):
        self.make_workflow()
        self.temp_dir = tempfile.mkdtemp()
        self.session_path = os.path.join(self.temp_dir, "session.json")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_restore_reloads_open_roll(self):
        roll = self.create_roll()
        self.workflow.submit_defect(DEFECT_FORM)
        self.workflow.save_session(self.session_path)

        restored = InspectionWorkflow(self.api, FakeScheduler(), SyncTaskRunner(), RecordingNotifier())
        self.assertTrue(restored.restore_session(self.session_path))

        self.assertEqual(restored.roll.id, roll.id)
        self.assertEqual(restored.form['barCode'], "B-0002")
        self.assertEqual(restored.state.active_tab, TAB_DEFECTS)
        self.assertEqual(len(restored.defects), 1)
        self.assertFalse(restored.state.is_saving)

    def test_restore_missing_roll_starts_fresh(self):
        roll = self.create_roll()
        self.workflow.save_session(self.session_path)
        del self.api.rolls[roll.id]

        notifier = RecordingNotifier()
        restored = InspectionWorkflow(self.api, FakeScheduler(), SyncTaskRunner(), notifier)
        restored.restore_session(self.session_path)

        self.assertIsNone(restored.roll)
        self.assertIsNone(restored.state.roll_id)
        self.assertEqual(notifier.levels(), ['error'])

    def test_restore_without_file(self):
        self.assertFalse(self.workflow.restore_session(self.session_path))

    def test_from_config(self):
        config = ConfigManager("config.json", base_dir=self.temp_dir)
        config.set('inspection.operator_id', 4)
        config.set('inspection.defect_default_span', 0.5)

        workflow = InspectionWorkflow.from_config(config, self.api, FakeScheduler(), SyncTaskRunner(),
                                                  RecordingNotifier())

        self.assertEqual(workflow.operator_id, 4)
        self.assertEqual(workflow.ledger.default_span, 0.5)
        self.assertEqual(workflow.poller.status_interval_ms, 5000)


if __name__ == '__main__':
    unittest.main()
