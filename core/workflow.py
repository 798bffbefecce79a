"""검사 작업 흐름: 스캔 -> (신규 작성 또는 불러오기) -> 측정 -> 결함 기록 -> 최종 처리"""

import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from core.barcode import BarcodeResolver
from core.ledger import DefectLedger
from core.lifecycle import RollLifecycle
from core.models import (
    BarcodeResolution, CatalogItem, DefectCode, DefectDraft, FabricDefect, FabricRoll, FinalizeIntent,
    CHANNEL_LENGTH, CHANNEL_WEIGHT, STATUS_COMPLETED, empty_roll_form,
)
from core.reconciler import MeasurementReconciler
from core.telemetry import TelemetryPoller
from core.workflow_state import (
    WorkflowState, reduce,
    ScanStarted, RollFound, RollNotFound, ScanFailed,
    SaveStarted, RollCreated, RollSaved, SaveFailed, TabSelected,
    DefectDialogOpened, DefectDialogClosed, DefectMutationStarted, DefectMutationFinished,
    DefectDeleteRequested, DefectDeleteCancelled, DefectDeleteConfirmed,
    FinalizeRequested, FinalizeCancelled, FinalizeStarted, RollFinalized, FinalizeFailed,
    InspectionLeft,
)
from utils.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from utils.file_handler import load_json_file, save_json_file

CHANNEL_NAMES = {
    CHANNEL_WEIGHT: "저울",
    CHANNEL_LENGTH: "미터 카운터",
}


class InspectionWorkflow:
    """검사 작업대의 흐름을 조율하고 화면 상태(WorkflowState)를 소유합니다.

    모든 상태 변경은 메인 루프에서 일어나며, 네트워크 호출은 runner를 통해
    백그라운드에서 실행됩니다. 오류는 notifier로 운영자에게 알리고, 작업대는
    항상 계속 진행할 수 있는 상태(신규 작성, 기존 롤, 기존 결함 목록)로 남습니다.
    """

    def __init__(self, api, scheduler, runner, notifier, event_logger=None,
                 operator_id: Optional[int] = None,
                 status_interval_ms: int = 5000, value_interval_ms: int = 1000,
                 defect_default_span: float = 0.1):
        self.api = api
        self.runner = runner
        self.notifier = notifier
        self.event_logger = event_logger
        self.operator_id = operator_id

        self.state = WorkflowState()
        self.roll: Optional[FabricRoll] = None
        self.form: Dict[str, Any] = empty_roll_form()
        self.form_version = 0
        self.defect_draft: Optional[DefectDraft] = None
        self.defect_codes: List[DefectCode] = []
        self.fabric_types: List[CatalogItem] = []
        self.machines: List[CatalogItem] = []

        self.poller = TelemetryPoller(api, scheduler, runner,
                                      status_interval_ms=status_interval_ms,
                                      value_interval_ms=value_interval_ms)
        self.reconciler = MeasurementReconciler(self._set_form_field, self.poller)
        self.resolver = BarcodeResolver(api, runner)
        self.ledger = DefectLedger(api, default_span=defect_default_span)
        self.lifecycle = RollLifecycle(api)

        self.poller.add_value_listener(self._on_channel_value)
        self.poller.add_connection_listener(self._on_connection_changed)

        self._listeners: List[Callable[["InspectionWorkflow"], None]] = []
        self._field_listeners: List[Callable[[str, Any], None]] = []

    @classmethod
    def from_config(cls, config, api, scheduler, runner, notifier, event_logger=None):
        return cls(
            api, scheduler, runner, notifier, event_logger=event_logger,
            operator_id=config.get('inspection.operator_id'),
            status_interval_ms=config.get('telemetry.status_interval_ms', 5000),
            value_interval_ms=config.get('telemetry.value_interval_ms', 1000),
            defect_default_span=config.get('inspection.defect_default_span', 0.1),
        )

    # ---------------------------------------------------------------
    # 구독 / 내부 도우미
    # ---------------------------------------------------------------

    def add_listener(self, callback: Callable[["InspectionWorkflow"], None]):
        """상태, 결함 목록, 측정값이 바뀔 때마다 호출됩니다."""
        self._listeners.append(callback)

    def add_field_listener(self, callback: Callable[[str, Any], None]):
        """측정값 반영 등으로 폼 필드 하나가 바뀔 때 호출됩니다."""
        self._field_listeners.append(callback)

    @property
    def defects(self) -> List[FabricDefect]:
        return self.ledger.entries

    def _changed(self):
        for callback in self._listeners:
            callback(self)

    def _dispatch(self, event):
        self.state = reduce(self.state, event)
        self._changed()

    def _log(self, event_type: str, detail: Optional[Dict] = None):
        if self.event_logger:
            self.event_logger.log_event(event_type, detail)

    def _report_error(self, title: str, error: Exception):
        level = 'warning' if isinstance(error, ValidationError) else 'error'
        if level == 'error':
            self._log('OPERATION_FAILED', {'operation': title, 'error': str(error)})
        self.notifier.notify(title, str(error), level)

    def _replace_form(self, form: Dict[str, Any]):
        self.form = form
        self.form_version += 1

    def _set_form_field(self, name: str, value: Any):
        if not self.state.can_edit:
            return
        self.form[name] = value
        for callback in self._field_listeners:
            callback(name, value)

    def _ensure_polling(self):
        if not self.poller.running:
            self.poller.start()

    # ---------------------------------------------------------------
    # 시작 / 종료
    # ---------------------------------------------------------------

    def start(self):
        self.poller.start()
        self.load_defect_codes()
        self.load_catalogs()

    def shutdown(self):
        self.poller.stop()

    def load_defect_codes(self):
        def loaded(codes: List[DefectCode]):
            self.defect_codes = codes
            self._changed()

        def failed(error: Exception):
            self._report_error("결함 코드 조회 실패", error)

        self.runner.submit(self.api.list_defect_codes, loaded, failed)

    def load_catalogs(self):
        """롤 입력 폼의 원단 종류/설비 선택 목록을 읽어옵니다."""
        def loader(attr: str, title: str):
            def loaded(items: List[CatalogItem]):
                setattr(self, attr, items)
                self._changed()

            def failed(error: Exception):
                self._report_error(title, error)

            return loaded, failed

        self.runner.submit(self.api.list_fabric_types, *loader('fabric_types', "원단 종류 조회 실패"))
        self.runner.submit(self.api.list_machines, *loader('machines', "설비 목록 조회 실패"))

    # ---------------------------------------------------------------
    # 측정값
    # ---------------------------------------------------------------

    def _on_channel_value(self, channel: str, value: float):
        self.reconciler.on_reading(channel, value)
        self._changed()

    def _on_connection_changed(self, channel: str, connected: bool):
        name = CHANNEL_NAMES[channel]
        if connected:
            self.notifier.notify("장비 연결", f"{name}가 연결되었습니다.", 'info')
            self._log('DEVICE_CONNECTED', {'channel': channel})
        else:
            self.notifier.notify("장비 연결 끊김", f"{name} 연결이 끊어졌습니다. 수동으로 입력하세요.", 'warning')
            self._log('DEVICE_DISCONNECTED', {'channel': channel})
        self._changed()

    def apply_manual(self, channel: str, raw_value: Any) -> Optional[float]:
        """수동 입력값을 즉시 폼에 적용합니다."""
        if not self.state.can_edit:
            self._report_error("수동 입력", InvalidTransitionError("최종 처리된 롤은 수정할 수 없습니다."))
            return None
        try:
            value = self.reconciler.apply_manual(channel, raw_value)
        except ValidationError as e:
            self._report_error("수동 입력 오류", e)
            return None
        self._log('MANUAL_MEASUREMENT', {'channel': channel, 'value': value})
        self._changed()
        return value

    # ---------------------------------------------------------------
    # 바코드
    # ---------------------------------------------------------------

    def scan_barcode(self, barcode: str) -> bool:
        """바코드 조회를 시작합니다. 조회 중이거나 입력이 비어 있으면 False를 반환합니다."""
        if self.state.is_scanning or self.resolver.in_flight:
            return False
        if self.state.pending_defect_mutations > 0:
            self._report_error("스캔 불가", InvalidTransitionError("결함 저장/삭제가 끝난 뒤 다시 스캔하세요."))
            return False
        try:
            barcode = self.resolver.normalize(barcode)
        except ValidationError as e:
            self._report_error("바코드 없음", e)
            return False
        self._dispatch(ScanStarted(barcode))
        self.resolver.resolve_async(barcode, self._on_scan_done, self._on_scan_failed)
        return True

    def _on_scan_done(self, resolution: BarcodeResolution):
        self._ensure_polling()
        self.defect_draft = None
        if resolution.found:
            roll = resolution.roll
            self.roll = roll
            self._replace_form(roll.to_form())
            self.ledger.clear()
            self._dispatch(RollFound(roll.id, roll.status))
            self.notifier.notify("롤 조회", f"'{roll.bar_code}' 롤을 불러왔습니다.", 'success')
            self._log('BARCODE_FOUND', {'barcode': roll.bar_code, 'roll_id': roll.id})
            self._refresh_defects()
        else:
            self.roll = None
            form = empty_roll_form()
            form['barCode'] = resolution.barcode
            self._replace_form(form)
            self.ledger.clear()
            self._dispatch(RollNotFound(resolution.barcode))
            self.notifier.notify("신규 롤", "등록된 롤이 없습니다. 새 롤 정보를 입력하세요.", 'info')
            self._log('BARCODE_NOT_FOUND', {'barcode': resolution.barcode})

    def _on_scan_failed(self, error: Exception):
        self._dispatch(ScanFailed())
        self._report_error("바코드 조회 실패", error)

    # ---------------------------------------------------------------
    # 롤 생성 / 수정
    # ---------------------------------------------------------------

    def submit_roll_form(self, fields: Optional[Dict[str, Any]] = None) -> bool:
        """신규 롤이면 생성하고, 기존 롤이면 수정합니다."""
        if self.state.is_saving:
            return False
        if not self.state.can_edit:
            self._report_error("저장 불가", InvalidTransitionError("최종 처리된 롤은 수정할 수 없습니다."))
            return False
        if fields:
            self.form.update(fields)

        if self.state.is_new_roll:
            try:
                payload = self.lifecycle.validate_create(self.form)
            except ValidationError as e:
                self._report_error("입력 오류", e)
                return False
            self._dispatch(SaveStarted())
            self.runner.submit(self.lifecycle.create, self._on_roll_created, self._on_save_failed,
                               payload, self.operator_id)
        else:
            try:
                payload = self.lifecycle.prepare_update(self.roll, self.form)
            except ValidationError as e:
                self._report_error("입력 오류", e)
                return False
            self._dispatch(SaveStarted())
            self.runner.submit(self.lifecycle.update, self._on_roll_updated, self._on_save_failed,
                               self.roll, payload)
        return True

    def _on_roll_created(self, roll: FabricRoll):
        self.roll = roll
        self._replace_form(roll.to_form())
        self.ledger.load(roll.id, [])
        self._dispatch(RollCreated(roll.id, roll.status))
        self.notifier.notify("롤 생성", "롤이 저장되었습니다. 결함 기록을 시작하세요.", 'success')
        self._log('ROLL_CREATED', {'barcode': roll.bar_code, 'roll_id': roll.id})

    def _on_roll_updated(self, roll: FabricRoll):
        self.roll = roll
        self._replace_form(roll.to_form())
        self._dispatch(RollSaved(roll.status))
        self.notifier.notify("롤 수정", "롤 정보가 저장되었습니다.", 'success')
        self._log('ROLL_UPDATED', {'barcode': roll.bar_code, 'roll_id': roll.id})

    def _on_save_failed(self, error: Exception):
        self._dispatch(SaveFailed())
        self._report_error("롤 저장 실패", error)

    def select_tab(self, tab: str):
        self._dispatch(TabSelected(tab))

    # ---------------------------------------------------------------
    # 결함
    # ---------------------------------------------------------------

    def _is_open_roll(self, roll_id: int) -> bool:
        return self.roll is not None and self.roll.id == roll_id

    def _apply_defects(self, roll_id: int, entries: List[FabricDefect]) -> bool:
        """조회한 결함 목록을 반영합니다. 그 사이 다른 롤로 바뀌었으면 버립니다."""
        if not self._is_open_roll(roll_id):
            return False
        self.ledger.load(roll_id, entries)
        return True

    def _refresh_defects(self):
        if self.roll is None or not self.roll.is_persisted:
            return
        roll_id = self.roll.id

        def loaded(entries: List[FabricDefect]):
            if self._apply_defects(roll_id, entries):
                self._changed()

        def failed(error: Exception):
            if self._is_open_roll(roll_id):
                self._report_error("결함 목록 조회 실패", error)

        self.runner.submit(self.ledger.fetch, loaded, failed, roll_id)

    def _check_defect_mutation_allowed(self):
        self.ledger.ensure_roll_accepts_defects(self.roll)
        if self.state.is_finalizing:
            raise InvalidTransitionError("최종 처리 중에는 결함을 변경할 수 없습니다.")

    def open_defect_dialog(self, draft: Optional[DefectDraft] = None) -> bool:
        try:
            self._check_defect_mutation_allowed()
        except ValidationError as e:
            self._report_error("결함 기록 불가", e)
            return False
        self.defect_draft = draft or DefectDraft()
        self._dispatch(DefectDialogOpened())
        return True

    def close_defect_dialog(self):
        self.defect_draft = None
        self._dispatch(DefectDialogClosed())

    def add_defect_at_current_position(self) -> bool:
        """현재 미터 값을 시작 위치로 하는 결함 입력창을 엽니다."""
        try:
            draft = self.ledger.seed_at_position(self.poller.current_value(CHANNEL_LENGTH))
        except ValidationError as e:
            self._report_error("현재 위치 없음", e)
            return False
        return self.open_defect_dialog(draft)

    def submit_defect(self, draft: Union[DefectDraft, Dict[str, Any]]) -> bool:
        if isinstance(draft, dict):
            draft = DefectDraft.from_form(draft)
        try:
            self._check_defect_mutation_allowed()
            valid = self.ledger.validate(draft)
        except ValidationError as e:
            self._report_error("결함 입력 오류", e)
            return False
        roll_id = self.roll.id

        def added(entries: List[FabricDefect]):
            self._apply_defects(roll_id, entries)
            self.defect_draft = None
            self._dispatch(DefectMutationFinished())
            self._dispatch(DefectDialogClosed())
            self.notifier.notify("결함 기록", f"{valid.defect_code} 결함이 기록되었습니다.", 'success')
            self._log('DEFECT_ADDED', {
                'roll_id': roll_id,
                'defect_code': valid.defect_code,
                'start_meter': valid.start_meter,
                'end_meter': valid.end_meter,
                'severity': valid.severity,
            })

        self._dispatch(DefectMutationStarted())
        self.runner.submit(self.ledger.add_defect, added, self._on_defect_mutation_failed,
                           self.roll, valid)
        return True

    def request_delete_defect(self, defect_id: int) -> bool:
        """삭제 확인 대화상자를 띄울 결함을 지정합니다."""
        try:
            self._check_defect_mutation_allowed()
        except ValidationError as e:
            self._report_error("결함 삭제 불가", e)
            return False
        self._dispatch(DefectDeleteRequested(defect_id))
        return True

    def cancel_delete_defect(self):
        self._dispatch(DefectDeleteCancelled())

    def confirm_delete_defect(self) -> bool:
        defect_id = self.state.defect_to_delete
        if defect_id is None:
            return False
        try:
            self._check_defect_mutation_allowed()
        except ValidationError as e:
            self._dispatch(DefectDeleteCancelled())
            self._report_error("결함 삭제 불가", e)
            return False
        roll_id = self.roll.id

        def removed(entries: List[FabricDefect]):
            self._apply_defects(roll_id, entries)
            self._dispatch(DefectMutationFinished())
            self.notifier.notify("결함 삭제", "결함이 삭제되었습니다.", 'success')
            self._log('DEFECT_REMOVED', {'roll_id': roll_id, 'defect_id': defect_id})

        self._dispatch(DefectDeleteConfirmed())
        self.runner.submit(self.ledger.remove_defect, removed, self._on_defect_mutation_failed,
                           roll_id, defect_id)
        return True

    def _on_defect_mutation_failed(self, error: Exception):
        self._dispatch(DefectMutationFinished())
        self._report_error("결함 저장 실패", error)
        if isinstance(error, NotFoundError):
            self._refresh_defects()

    # ---------------------------------------------------------------
    # 최종 처리 (완료 / 불합격)
    # ---------------------------------------------------------------

    def request_finalize(self, intent: FinalizeIntent) -> bool:
        """최종 처리 확인 대화상자를 엽니다. 실제 처리는 confirm_finalize에서 합니다."""
        if not self.state.can_finalize:
            if self.state.pending_defect_mutations > 0:
                reason = "결함 저장/삭제가 끝난 뒤 다시 시도하세요."
            else:
                reason = "활성 상태의 롤만 최종 처리할 수 있습니다."
            self._report_error("최종 처리 불가", InvalidTransitionError(reason))
            return False
        self._dispatch(FinalizeRequested(intent))
        return True

    def cancel_finalize(self):
        self._dispatch(FinalizeCancelled())

    def confirm_finalize(self) -> bool:
        intent = self.state.finalize_intent
        if intent is None or self.state.is_finalizing:
            return False
        try:
            self.lifecycle.ensure_active(self.roll, "최종 처리")
            if self.state.pending_defect_mutations > 0:
                raise InvalidTransitionError("결함 저장/삭제가 끝난 뒤 다시 시도하세요.")
        except ValidationError as e:
            self._dispatch(FinalizeCancelled())
            self._report_error("최종 처리 불가", e)
            return False

        self._dispatch(FinalizeStarted())
        self.runner.submit(self.lifecycle.finalize, self._on_finalized, self._on_finalize_failed,
                           self.roll, intent, self.state.pending_defect_mutations)
        return True

    def _on_finalized(self, roll: FabricRoll):
        self.roll = roll
        self.poller.stop()
        self._dispatch(RollFinalized(roll.status))
        if roll.status == STATUS_COMPLETED:
            self.notifier.notify("검사 완료", f"'{roll.bar_code}' 롤 검사가 완료되었습니다.", 'success')
            self._log('ROLL_COMPLETED', {'barcode': roll.bar_code, 'roll_id': roll.id})
        else:
            self.notifier.notify("불합격 처리", f"'{roll.bar_code}' 롤이 불합격 처리되었습니다.", 'warning')
            self._log('ROLL_REJECTED', {'barcode': roll.bar_code, 'roll_id': roll.id})

    def _on_finalize_failed(self, error: Exception):
        self._dispatch(FinalizeFailed())
        self._report_error("최종 처리 실패", error)

    # ---------------------------------------------------------------
    # 화면 이동 / 세션 상태
    # ---------------------------------------------------------------

    def leave_inspection(self):
        """검사 화면을 떠납니다. 장비 조회도 함께 중단됩니다."""
        self.poller.stop()
        self._dispatch(InspectionLeft())

    def start_new_inspection(self) -> bool:
        """다음 롤 검사를 위해 화면을 초기화합니다. 결함 저장/삭제 중이면 False를 반환합니다."""
        if self.state.pending_defect_mutations > 0:
            self._report_error("새 검사 불가", InvalidTransitionError("결함 저장/삭제가 끝난 뒤 다시 시도하세요."))
            return False
        self.roll = None
        self.defect_draft = None
        self.ledger.clear()
        self._replace_form(empty_roll_form())
        self.state = WorkflowState()
        self._ensure_polling()
        self._changed()
        return True

    def save_session(self, file_path: str):
        save_json_file(file_path, {
            'saved_at': datetime.datetime.now().isoformat(),
            'state': self.state.to_dict(),
            'form': self.form,
        })

    def restore_session(self, file_path: str) -> bool:
        """저장된 작업 상태를 복원합니다. 열려 있던 롤은 서버에서 다시 읽어옵니다."""
        data = load_json_file(file_path)
        if not data or 'state' not in data:
            return False
        try:
            restored = WorkflowState.from_dict(data['state'])
        except (TypeError, ValueError) as e:
            print(f"세션 상태 복원 실패: {e}")
            return False

        # 진행 중이던 호출은 복원하지 않는다
        self.state = WorkflowState(
            active_tab=restored.active_tab,
            roll_id=restored.roll_id,
            roll_status=restored.roll_status,
            is_new_roll=restored.is_new_roll,
            prefilled_barcode=restored.prefilled_barcode,
        )
        form = empty_roll_form()
        form.update(data.get('form') or {})
        self._replace_form(form)
        self._changed()

        if restored.roll_id is not None:
            self.runner.submit(self.api.get_roll, self._on_session_roll_loaded,
                               self._on_session_roll_failed, restored.roll_id)
        return True

    def _on_session_roll_loaded(self, roll: FabricRoll):
        self.roll = roll
        self.ledger.load(roll.id, [])
        self._dispatch(RollSaved(roll.status))
        self._refresh_defects()

    def _on_session_roll_failed(self, error: Exception):
        self._report_error("롤 복원 실패", error)
        if isinstance(error, NotFoundError):
            self.start_new_inspection()
