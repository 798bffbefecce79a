"""데이터 모델 정의 모듈"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Any


STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_REJECTED = "rejected"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_REJECTED)

SEVERITY_LEVELS = ("low", "medium", "high")

CHANNEL_WEIGHT = "weight"
CHANNEL_LENGTH = "length"
CHANNELS = (CHANNEL_WEIGHT, CHANNEL_LENGTH)


def to_float(value: Any) -> Optional[float]:
    """서버가 문자열로 내려주는 숫자 값을 float로 변환합니다."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return float(value)


def to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def format_number(value: Any) -> str:
    """입력란에 보여줄 숫자 문자열. 자릿수를 줄이지 않고 받은 값 그대로 표시합니다."""
    if value in (None, ""):
        return ""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


class FinalizeIntent(Enum):
    """롤 최종 처리 의도 (완료 / 불합격)"""
    COMPLETE = "complete"
    REJECT = "reject"

    @property
    def target_status(self) -> str:
        return STATUS_COMPLETED if self is FinalizeIntent.COMPLETE else STATUS_REJECTED


@dataclass
class FabricRoll:
    """검사 중인 원단 롤 한 개의 데이터입니다."""
    id: Optional[int] = None
    bar_code: str = ""
    batch_no: str = ""
    fabric_type_id: Optional[int] = None
    color: str = ""
    machine_id: Optional[int] = None
    notes: str = ""
    width: Optional[float] = None
    length: Optional[float] = None
    weight: Optional[float] = None
    status: str = STATUS_ACTIVE
    operator_id: Optional[int] = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def is_active(self) -> bool:
        return self.is_persisted and self.status == STATUS_ACTIVE

    @property
    def is_terminal(self) -> bool:
        """완료 또는 불합격. 이 상태에서 나가는 전이는 없습니다."""
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FabricRoll":
        return cls(
            id=to_int(data.get("id")),
            bar_code=data.get("barCode") or "",
            batch_no=data.get("batchNo") or "",
            fabric_type_id=to_int(data.get("fabricTypeId")),
            color=data.get("color") or "",
            machine_id=to_int(data.get("machineId")),
            notes=data.get("notes") or "",
            width=to_float(data.get("width")),
            length=to_float(data.get("length")),
            weight=to_float(data.get("weight")),
            status=data.get("status") or STATUS_ACTIVE,
            operator_id=to_int(data.get("operatorId")),
        )

    def to_api(self) -> Dict[str, Any]:
        data = {
            "barCode": self.bar_code,
            "batchNo": self.batch_no,
            "fabricTypeId": self.fabric_type_id,
            "color": self.color,
            "machineId": self.machine_id,
            "notes": self.notes,
            "width": self.width,
            "length": self.length,
            "weight": self.weight,
            "status": self.status,
            "operatorId": self.operator_id,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    def to_form(self) -> Dict[str, Any]:
        """롤 정보 입력 폼에 채울 값들을 반환합니다."""
        form = self.to_api()
        form.pop("id", None)
        form.pop("status", None)
        form.pop("operatorId", None)
        return form


@dataclass
class DefectDraft:
    """아직 저장되지 않은 결함 입력값입니다."""
    defect_code: str = ""
    start_meter: float = 0.0
    end_meter: float = 0.0
    width: float = 0.0
    severity: str = "medium"
    description: str = ""

    @classmethod
    def from_form(cls, data: Dict[str, Any]) -> "DefectDraft":
        return cls(
            defect_code=str(data.get("defectCode") or "").strip(),
            start_meter=data.get("startMeter", 0.0),
            end_meter=data.get("endMeter", 0.0),
            width=data.get("width", 0.0),
            severity=data.get("severity") or "medium",
            description=data.get("description") or "",
        )

    def to_api(self, fabric_roll_id: int) -> Dict[str, Any]:
        return {
            "fabricRollId": fabric_roll_id,
            "defectCode": self.defect_code,
            "startMeter": self.start_meter,
            "endMeter": self.end_meter,
            "width": self.width,
            "severity": self.severity,
            "description": self.description,
        }


@dataclass
class FabricDefect:
    """롤 위의 특정 구간에 기록된 결함 한 건입니다."""
    id: Optional[int] = None
    fabric_roll_id: Optional[int] = None
    defect_code: str = ""
    start_meter: float = 0.0
    end_meter: float = 0.0
    width: Optional[float] = None
    severity: str = "medium"
    description: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "FabricDefect":
        return cls(
            id=to_int(data.get("id")),
            fabric_roll_id=to_int(data.get("fabricRollId")),
            defect_code=data.get("defectCode") or "",
            start_meter=to_float(data.get("startMeter")) or 0.0,
            end_meter=to_float(data.get("endMeter")) or 0.0,
            width=to_float(data.get("width")),
            severity=data.get("severity") or "medium",
            description=data.get("description") or data.get("notes") or "",
        )


@dataclass
class DefectCode:
    """결함 코드 카탈로그 항목 (읽기 전용)"""
    code: str = ""
    name: str = ""
    description: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "DefectCode":
        return cls(
            code=data.get("code") or "",
            name=data.get("name") or "",
            description=data.get("description") or "",
        )

    @property
    def label(self) -> str:
        return f"{self.code} - {self.name}" if self.name else self.code


@dataclass
class CatalogItem:
    """원단 종류, 설비 등 id로 참조하는 읽기 전용 기준 정보"""
    id: Optional[int] = None
    name: str = ""
    code: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CatalogItem":
        return cls(
            id=to_int(data.get("id")),
            name=data.get("name") or "",
            code=data.get("code") or "",
        )

    @property
    def label(self) -> str:
        if self.code:
            return f"{self.name} ({self.code})"
        return self.name or str(self.id)


def catalog_label(items: List[CatalogItem], item_id: Optional[int]) -> str:
    """id에 해당하는 표시 이름. 목록에 없으면 id를 그대로 보여줍니다."""
    if item_id is None:
        return ""
    for item in items:
        if item.id == item_id:
            return item.label
    return str(item_id)


def catalog_id(items: List[CatalogItem], text: str) -> Optional[int]:
    """선택된 표시 이름을 id로 되돌립니다. 목록에 없는 숫자는 id로 받아들입니다."""
    text = (text or "").strip()
    if not text:
        return None
    for item in items:
        if item.label == text:
            return item.id
    return int(text)


@dataclass
class DeviceReading:
    """측정 장비 채널의 현재 상태 (저장되지 않음)"""
    connected: bool = False
    value: float = 0.0


@dataclass
class BarcodeResolution:
    """바코드 조회 결과"""
    barcode: str
    roll: Optional[FabricRoll] = None

    @property
    def found(self) -> bool:
        return self.roll is not None


def empty_roll_form() -> Dict[str, Any]:
    """새 롤 입력 폼의 기본값"""
    return FabricRoll().to_form()
