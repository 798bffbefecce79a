"""롤 상태 전이: 신규(미저장) -> active -> completed / rejected"""

from typing import Any, Dict, Optional

from core.models import FabricRoll, FinalizeIntent, STATUS_ACTIVE, to_int
from utils.exceptions import InvalidTransitionError, ValidationError

REQUIRED_CREATE_FIELDS = {
    'barCode': "바코드",
    'batchNo': "배치 번호",
    'fabricTypeId': "원단 종류",
}

# update로 바꿀 수 없는 필드 (상태는 finalize로만 변경)
PROTECTED_FIELDS = ('id', 'status', 'operatorId')


class RollLifecycle:
    """롤 생성, 수정, 최종 처리(완료/불합격)를 담당합니다.

    완료와 불합격은 되돌릴 수 없는 최종 상태이며, 최종 상태에서 나가는 전이는 없습니다.
    """

    def __init__(self, api):
        self.api = api

    @staticmethod
    def validate_create(fields: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = dict(fields)
        for key, label in REQUIRED_CREATE_FIELDS.items():
            value = cleaned.get(key)
            if isinstance(value, str):
                value = value.strip()
            if value in (None, "", 0):
                raise ValidationError(f"{label}은(는) 필수 입력 항목입니다.", field=key)
            cleaned[key] = value
        try:
            cleaned['fabricTypeId'] = to_int(cleaned['fabricTypeId'])
        except (TypeError, ValueError):
            raise ValidationError("원단 종류가 올바르지 않습니다.", field='fabricTypeId')
        return cleaned

    def create(self, fields: Dict[str, Any], operator_id: Optional[int] = None) -> FabricRoll:
        """신규 롤을 active 상태로 저장합니다."""
        payload = self.validate_create(fields)
        for key in PROTECTED_FIELDS:
            payload.pop(key, None)
        payload['status'] = STATUS_ACTIVE
        if operator_id is not None:
            payload['operatorId'] = operator_id
        return self.api.create_roll(payload)

    @staticmethod
    def ensure_active(roll: Optional[FabricRoll], action: str):
        if roll is None or not roll.is_persisted:
            raise InvalidTransitionError(f"저장되지 않은 롤은 {action}할 수 없습니다.")
        if roll.is_terminal:
            raise InvalidTransitionError(f"최종 처리된 롤('{roll.status}')은 {action}할 수 없습니다.")
        if roll.status != STATUS_ACTIVE:
            raise InvalidTransitionError(f"'{roll.status}' 상태의 롤은 {action}할 수 없습니다.")

    def prepare_update(self, roll: FabricRoll, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.ensure_active(roll, "수정")
        payload = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
        if 'barCode' in payload:
            if str(payload['barCode']).strip() != roll.bar_code:
                raise ValidationError("바코드는 생성 후 변경할 수 없습니다.", field='barCode')
            payload.pop('barCode')
        for key in ('batchNo', 'fabricTypeId'):
            if key in payload and payload[key] in (None, ""):
                raise ValidationError(f"{REQUIRED_CREATE_FIELDS[key]}은(는) 비울 수 없습니다.", field=key)
        return payload

    def update(self, roll: FabricRoll, fields: Dict[str, Any]) -> FabricRoll:
        """active 롤의 일부 필드를 수정합니다. 상태는 바뀌지 않습니다."""
        payload = self.prepare_update(roll, fields)
        return self.api.update_roll(roll.id, payload)

    def finalize(self, roll: FabricRoll, intent: FinalizeIntent,
                 pending_defect_mutations: int = 0) -> FabricRoll:
        """롤을 완료 또는 불합격 처리합니다.

        결함 추가/삭제가 진행 중이면 처리하지 않습니다. 서버 오류 시 롤은 active로 남습니다.
        """
        self.ensure_active(roll, "최종 처리")
        if pending_defect_mutations > 0:
            raise InvalidTransitionError("결함 저장/삭제가 끝난 뒤 다시 시도하세요.")
        return self.api.update_roll_status(roll.id, intent.target_status)
