"""검사 화면 상태와 상태 전이 함수

화면 상태(현재 탭, 대화상자 표시 여부, 선택된 롤)는 WorkflowState 값 하나로
표현하며, reduce(state, event)는 새 상태를 돌려주는 순수 함수입니다.
"""

from dataclasses import dataclass, replace, asdict
from typing import Any, Dict, Optional

from core.models import FinalizeIntent, STATUS_ACTIVE

VIEW_INSPECTION = "inspection"
VIEW_CLOSED = "closed"

TAB_ROLL_INFO = "roll_info"
TAB_DEFECTS = "defects"


@dataclass(frozen=True)
class WorkflowState:
    view: str = VIEW_INSPECTION
    active_tab: str = TAB_ROLL_INFO
    roll_id: Optional[int] = None
    roll_status: Optional[str] = None
    is_new_roll: bool = True
    prefilled_barcode: str = ""
    is_scanning: bool = False
    is_saving: bool = False
    is_finalizing: bool = False
    pending_defect_mutations: int = 0
    defect_dialog_open: bool = False
    defect_to_delete: Optional[int] = None
    finalize_intent: Optional[FinalizeIntent] = None
    last_outcome: Optional[str] = None

    @property
    def defects_tab_enabled(self) -> bool:
        return self.roll_id is not None

    @property
    def can_edit(self) -> bool:
        return self.view == VIEW_INSPECTION and (
            self.is_new_roll or self.roll_status == STATUS_ACTIVE)

    @property
    def can_finalize(self) -> bool:
        return (self.view == VIEW_INSPECTION
                and self.roll_id is not None
                and self.roll_status == STATUS_ACTIVE
                and not self.is_finalizing
                and self.pending_defect_mutations == 0)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['finalize_intent'] = self.finalize_intent.value if self.finalize_intent else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowState":
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        intent = known.get('finalize_intent')
        known['finalize_intent'] = FinalizeIntent(intent) if intent else None
        return cls(**known)


# ---------------------------------------------------------------
# 이벤트
# ---------------------------------------------------------------

@dataclass(frozen=True)
class ScanStarted:
    barcode: str


@dataclass(frozen=True)
class RollFound:
    roll_id: int
    status: str


@dataclass(frozen=True)
class RollNotFound:
    barcode: str


@dataclass(frozen=True)
class ScanFailed:
    pass


@dataclass(frozen=True)
class SaveStarted:
    pass


@dataclass(frozen=True)
class RollCreated:
    roll_id: int
    status: str = STATUS_ACTIVE


@dataclass(frozen=True)
class RollSaved:
    status: str


@dataclass(frozen=True)
class SaveFailed:
    pass


@dataclass(frozen=True)
class TabSelected:
    tab: str


@dataclass(frozen=True)
class DefectDialogOpened:
    pass


@dataclass(frozen=True)
class DefectDialogClosed:
    pass


@dataclass(frozen=True)
class DefectMutationStarted:
    pass


@dataclass(frozen=True)
class DefectMutationFinished:
    pass


@dataclass(frozen=True)
class DefectDeleteRequested:
    defect_id: int


@dataclass(frozen=True)
class DefectDeleteCancelled:
    pass


@dataclass(frozen=True)
class DefectDeleteConfirmed:
    pass


@dataclass(frozen=True)
class FinalizeRequested:
    intent: FinalizeIntent


@dataclass(frozen=True)
class FinalizeCancelled:
    pass


@dataclass(frozen=True)
class FinalizeStarted:
    pass


@dataclass(frozen=True)
class RollFinalized:
    status: str


@dataclass(frozen=True)
class FinalizeFailed:
    pass


@dataclass(frozen=True)
class InspectionLeft:
    pass


def reduce(state: WorkflowState, event) -> WorkflowState:
    """현재 상태와 이벤트로부터 다음 상태를 계산합니다. 해당 없는 이벤트는 상태를 그대로 둡니다."""
    if isinstance(event, ScanStarted):
        return replace(state, is_scanning=True)
    if isinstance(event, RollFound):
        # 기존 롤은 바로 결함 기록 탭으로 이동
        return replace(state, view=VIEW_INSPECTION, is_scanning=False, roll_id=event.roll_id,
                       roll_status=event.status, is_new_roll=False, prefilled_barcode="",
                       active_tab=TAB_DEFECTS, defect_dialog_open=False, defect_to_delete=None,
                       finalize_intent=None, last_outcome=None)
    if isinstance(event, RollNotFound):
        return replace(state, view=VIEW_INSPECTION, is_scanning=False, roll_id=None,
                       roll_status=None, is_new_roll=True, prefilled_barcode=event.barcode,
                       active_tab=TAB_ROLL_INFO, defect_dialog_open=False, defect_to_delete=None,
                       finalize_intent=None, last_outcome=None)
    if isinstance(event, ScanFailed):
        return replace(state, is_scanning=False)

    if isinstance(event, SaveStarted):
        return replace(state, is_saving=True)
    if isinstance(event, RollCreated):
        return replace(state, is_saving=False, roll_id=event.roll_id, roll_status=event.status,
                       is_new_roll=False, prefilled_barcode="", active_tab=TAB_DEFECTS)
    if isinstance(event, RollSaved):
        return replace(state, is_saving=False, roll_status=event.status)
    if isinstance(event, SaveFailed):
        return replace(state, is_saving=False)

    if isinstance(event, TabSelected):
        if event.tab == TAB_DEFECTS and not state.defects_tab_enabled:
            return state
        return replace(state, active_tab=event.tab)

    if isinstance(event, DefectDialogOpened):
        if state.roll_status != STATUS_ACTIVE:
            return state
        return replace(state, defect_dialog_open=True)
    if isinstance(event, DefectDialogClosed):
        return replace(state, defect_dialog_open=False)
    if isinstance(event, DefectMutationStarted):
        return replace(state, pending_defect_mutations=state.pending_defect_mutations + 1)
    if isinstance(event, DefectMutationFinished):
        return replace(state, pending_defect_mutations=max(0, state.pending_defect_mutations - 1))
    if isinstance(event, DefectDeleteRequested):
        return replace(state, defect_to_delete=event.defect_id)
    if isinstance(event, DefectDeleteCancelled):
        return replace(state, defect_to_delete=None)
    if isinstance(event, DefectDeleteConfirmed):
        return replace(state, defect_to_delete=None,
                       pending_defect_mutations=state.pending_defect_mutations + 1)

    if isinstance(event, FinalizeRequested):
        if not state.can_finalize:
            return state
        return replace(state, finalize_intent=event.intent)
    if isinstance(event, FinalizeCancelled):
        return replace(state, finalize_intent=None)
    if isinstance(event, FinalizeStarted):
        return replace(state, is_finalizing=True)
    if isinstance(event, RollFinalized):
        return replace(state, is_finalizing=False, finalize_intent=None, roll_status=event.status,
                       last_outcome=event.status, defect_dialog_open=False, defect_to_delete=None,
                       view=VIEW_CLOSED)
    if isinstance(event, FinalizeFailed):
        # 확인 대화상자는 유지하여 재시도할 수 있게 한다
        return replace(state, is_finalizing=False)

    if isinstance(event, InspectionLeft):
        return replace(state, view=VIEW_CLOSED, defect_dialog_open=False, defect_to_delete=None,
                       finalize_intent=None)
    return state
