"""장비 측정값과 수동 입력값을 롤 입력 폼의 무게/길이 필드에 반영합니다."""

from typing import Any, Callable, Optional

from core.models import CHANNEL_WEIGHT, CHANNEL_LENGTH, to_float
from utils.exceptions import ValidationError

FIELD_BY_CHANNEL = {
    CHANNEL_WEIGHT: 'weight',
    CHANNEL_LENGTH: 'length',
}


class MeasurementReconciler:
    """채널 값을 폼 필드로 옮기는 규칙을 담당합니다.

    - 0이 아닌 값은 장비 연결 여부와 관계없이 항상 폼에 반영합니다.
      (연결 상태는 자동 조회 여부만 결정합니다.)
    - 운영자의 수동 적용은 즉시 현재 값을 덮어씁니다.
    - 반올림이나 단위 변환은 하지 않습니다.
    """

    def __init__(self, set_field: Callable[[str, Any], None], poller=None):
        self.set_field = set_field
        self.poller = poller

    def on_reading(self, channel: str, value: Optional[float]) -> bool:
        """장비에서 읽은 값을 반영합니다. 반영했으면 True를 반환합니다."""
        if not value:
            return False
        self.set_field(FIELD_BY_CHANNEL[channel], value)
        return True

    def apply_manual(self, channel: str, raw_value: Any) -> float:
        """운영자가 입력한 값을 즉시 폼에 적용합니다."""
        field_name = FIELD_BY_CHANNEL[channel]
        try:
            value = to_float(raw_value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field_name} 값은 숫자여야 합니다: {raw_value!r}", field=field_name)
        if value is None:
            raise ValidationError(f"{field_name} 값을 입력하세요.", field=field_name)

        if self.poller is not None:
            self.poller.override(channel, value)
        self.set_field(field_name, value)
        return value
