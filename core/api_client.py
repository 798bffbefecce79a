"""품질 관리 서버(롤/결함 저장, 장비 텔레메트리) REST 클라이언트"""

from typing import Dict, List, Optional, Any
from urllib.parse import quote

import requests

from core.models import (
    FabricRoll, FabricDefect, DefectCode, CatalogItem, to_float,
    CHANNEL_WEIGHT, CHANNEL_LENGTH,
)
from utils.exceptions import ConfigurationError, IntegrationError, NotFoundError


class QualityApiClient:
    """롤/결함 영속화 서비스와 장비 텔레메트리 서비스에 접근합니다."""

    VALUE_ENDPOINTS = {
        CHANNEL_WEIGHT: "/weight-value",
        CHANNEL_LENGTH: "/meter-value",
    }

    def __init__(self, base_url: str, timeout: float = 10,
                 headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None,
                 catalog_base_url: Optional[str] = None):
        if not base_url:
            raise ConfigurationError("api.base_url 설정이 비어 있습니다.")
        self.base_url = base_url.rstrip('/')
        # 원단 종류/설비 목록은 품질 API와 같은 서버의 /api 아래에 있다
        self.catalog_base_url = (catalog_base_url or self.base_url.rsplit('/', 1)[0]).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)

    @classmethod
    def from_config(cls, config) -> "QualityApiClient":
        return cls(
            base_url=config.get('api.base_url'),
            timeout=config.get('api.timeout_sec', 10),
            headers=config.get('api.headers') or None,
            catalog_base_url=config.get('api.catalog_base_url') or None,
        )

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                 base_url: Optional[str] = None) -> Any:
        url = f"{base_url or self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise IntegrationError(f"서버와 연결할 수 없습니다: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(self._error_message(response, "요청한 데이터를 찾을 수 없습니다."))
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            message = self._error_message(response, "서버 요청 처리 중 오류가 발생했습니다.")
            raise IntegrationError(message, status_code=response.status_code) from e

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise IntegrationError("서버 응답을 해석할 수 없습니다.", status_code=response.status_code) from e

    @staticmethod
    def _error_message(response: requests.Response, default: str) -> str:
        try:
            data = response.json()
        except ValueError:
            return default
        if isinstance(data, dict):
            return data.get('message') or data.get('error') or default
        return default

    # ---------------------------------------------------------------
    # 장비 텔레메트리
    # ---------------------------------------------------------------

    def get_device_status(self) -> Dict[str, bool]:
        data = self._request("GET", "/device-status") or {}
        return {
            'weightConnected': bool(data.get('weightConnected')),
            'meterConnected': bool(data.get('meterConnected')),
        }

    def get_channel_value(self, channel: str) -> float:
        data = self._request("GET", self.VALUE_ENDPOINTS[channel]) or {}
        try:
            return to_float(data.get('value')) or 0.0
        except (TypeError, ValueError) as e:
            raise IntegrationError(f"잘못된 측정값입니다: {data.get('value')!r}") from e

    # ---------------------------------------------------------------
    # 롤
    # ---------------------------------------------------------------

    def get_roll(self, roll_id: int) -> FabricRoll:
        return FabricRoll.from_api(self._request("GET", f"/fabric-rolls/{roll_id}"))

    def get_roll_by_barcode(self, barcode: str) -> FabricRoll:
        path = f"/fabric-rolls/barcode/{quote(barcode, safe='')}"
        return FabricRoll.from_api(self._request("GET", path))

    def create_roll(self, fields: Dict[str, Any]) -> FabricRoll:
        return FabricRoll.from_api(self._request("POST", "/fabric-rolls", fields))

    def update_roll(self, roll_id: int, fields: Dict[str, Any]) -> FabricRoll:
        return FabricRoll.from_api(self._request("PUT", f"/fabric-rolls/{roll_id}", fields))

    def update_roll_status(self, roll_id: int, status: str) -> FabricRoll:
        data = self._request("PUT", f"/fabric-rolls/{roll_id}/status", {'status': status})
        return FabricRoll.from_api(data)

    # ---------------------------------------------------------------
    # 결함
    # ---------------------------------------------------------------

    def list_defects(self, roll_id: int) -> List[FabricDefect]:
        data = self._request("GET", f"/fabric-defects/{roll_id}") or []
        return [FabricDefect.from_api(item) for item in data]

    def create_defect(self, payload: Dict[str, Any]) -> FabricDefect:
        return FabricDefect.from_api(self._request("POST", "/fabric-defects", payload))

    def delete_defect(self, defect_id: int) -> None:
        self._request("DELETE", f"/fabric-defects/{defect_id}")

    def list_defect_codes(self) -> List[DefectCode]:
        data = self._request("GET", "/defect-codes") or []
        return [DefectCode.from_api(item) for item in data]

    # ---------------------------------------------------------------
    # 기준 정보
    # ---------------------------------------------------------------

    def list_fabric_types(self) -> List[CatalogItem]:
        data = self._request("GET", "/product/fabric-types", base_url=self.catalog_base_url) or []
        return [CatalogItem.from_api(item) for item in data]

    def list_machines(self) -> List[CatalogItem]:
        data = self._request("GET", "/machines", base_url=self.catalog_base_url) or []
        return [CatalogItem.from_api(item) for item in data]
