"""검사 중인 롤의 결함 목록 관리"""

from typing import List, Optional

from core.models import DefectDraft, FabricDefect, FabricRoll, SEVERITY_LEVELS, to_float
from utils.exceptions import InvalidTransitionError, ValidationError


class DefectLedger:
    """활성 롤 하나에 속한 결함 목록입니다.

    목록은 항상 서버가 돌려준 순서대로 보여주며, 추가/삭제 후에는 서버에서
    다시 읽어와 화면과 저장 상태를 맞춥니다.
    """

    def __init__(self, api, default_span: float = 0.1):
        self.api = api
        self.default_span = default_span
        self.roll_id: Optional[int] = None
        self.entries: List[FabricDefect] = []

    def clear(self):
        self.roll_id = None
        self.entries = []

    def fetch(self, roll_id: int) -> List[FabricDefect]:
        """서버에서 롤의 결함 목록을 읽어옵니다. 목록 상태는 바꾸지 않습니다."""
        return self.api.list_defects(roll_id)

    def load(self, roll_id: int, entries: List[FabricDefect]):
        self.roll_id = roll_id
        self.entries = list(entries)

    @staticmethod
    def _number(value, field_name: str) -> float:
        try:
            number = to_float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field_name} 값은 숫자여야 합니다.", field=field_name)
        if number is None:
            raise ValidationError(f"{field_name} 값을 입력하세요.", field=field_name)
        return number

    def validate(self, draft: DefectDraft) -> DefectDraft:
        """입력값을 검증하고 숫자 필드를 float로 정규화한 사본을 반환합니다."""
        code = (draft.defect_code or "").strip()
        if not code:
            raise ValidationError("결함 코드를 선택하세요.", field='defectCode')

        start = self._number(draft.start_meter, 'startMeter')
        end = self._number(draft.end_meter, 'endMeter')
        width = self._number(draft.width, 'width')

        if start < 0:
            raise ValidationError("시작 위치는 0 이상이어야 합니다.", field='startMeter')
        if end < start:
            raise ValidationError("종료 위치는 시작 위치보다 작을 수 없습니다.", field='endMeter')
        if width <= 0:
            raise ValidationError("결함 폭은 0보다 커야 합니다.", field='width')
        if draft.severity not in SEVERITY_LEVELS:
            raise ValidationError(f"심각도는 {', '.join(SEVERITY_LEVELS)} 중 하나여야 합니다.",
                                  field='severity')

        return DefectDraft(
            defect_code=code,
            start_meter=start,
            end_meter=end,
            width=width,
            severity=draft.severity,
            description=(draft.description or "").strip(),
        )

    @staticmethod
    def ensure_roll_accepts_defects(roll: Optional[FabricRoll]):
        if roll is None or not roll.is_persisted:
            raise InvalidTransitionError("저장된 롤이 없어 결함을 기록할 수 없습니다.")
        if not roll.is_active:
            raise InvalidTransitionError(f"'{roll.status}' 상태의 롤에는 결함을 추가할 수 없습니다.")

    def add_defect(self, roll: FabricRoll, draft: DefectDraft) -> List[FabricDefect]:
        """결함을 저장하고 서버의 최신 목록을 반환합니다. 검증 실패 시 아무것도 저장하지 않습니다.

        백그라운드 스레드에서 호출되므로 목록 상태는 바꾸지 않습니다. 반환된 목록은
        호출한 쪽이 같은 롤을 보고 있을 때만 load로 반영합니다.
        """
        self.ensure_roll_accepts_defects(roll)
        valid = self.validate(draft)
        self.api.create_defect(valid.to_api(roll.id))
        return self.fetch(roll.id)

    def remove_defect(self, roll_id: int, defect_id: int) -> List[FabricDefect]:
        """결함을 삭제합니다. 존재하지 않는 결함이면 NotFoundError가 발생합니다."""
        self.api.delete_defect(defect_id)
        return self.fetch(roll_id)

    def seed_at_position(self, meter: Optional[float]) -> DefectDraft:
        """현재 미터 위치에서 시작하는 결함 입력값을 만듭니다."""
        if not meter or meter <= 0:
            raise ValidationError("현재 미터 값이 없어 위치를 지정할 수 없습니다.", field='startMeter')
        return DefectDraft(start_meter=meter, end_meter=meter + self.default_span)

    def find(self, defect_id: int) -> Optional[FabricDefect]:
        for entry in self.entries:
            if entry.id == defect_id:
                return entry
        return None
