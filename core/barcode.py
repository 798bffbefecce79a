"""스캔/입력된 바코드를 기존 롤 또는 신규 롤 작성으로 연결합니다."""

from typing import Callable

from core.models import BarcodeResolution
from utils.exceptions import NotFoundError, ValidationError


class BarcodeResolver:
    """바코드 조회기. 작업대당 동시에 한 건의 조회만 진행합니다."""

    def __init__(self, api, runner=None):
        self.api = api
        self.runner = runner
        self.in_flight = False

    @staticmethod
    def normalize(barcode: str) -> str:
        barcode = (barcode or "").strip()
        if not barcode:
            raise ValidationError("바코드를 입력하거나 스캔하세요.", field='barCode')
        return barcode

    def resolve(self, barcode: str) -> BarcodeResolution:
        """바코드에 해당하는 롤을 찾습니다.

        없으면 roll이 None인 결과를 반환하고, 그 밖의 서버 오류는
        IntegrationError로 그대로 전달됩니다.
        """
        barcode = self.normalize(barcode)
        try:
            roll = self.api.get_roll_by_barcode(barcode)
        except NotFoundError:
            return BarcodeResolution(barcode=barcode)
        return BarcodeResolution(barcode=barcode, roll=roll)

    def resolve_async(self, barcode: str,
                      on_done: Callable[[BarcodeResolution], None],
                      on_error: Callable[[Exception], None]) -> bool:
        """백그라운드 조회를 시작합니다. 이미 조회 중이면 False를 반환합니다.

        빈 바코드는 요청 없이 즉시 ValidationError를 발생시킵니다.
        """
        if self.in_flight:
            return False
        barcode = self.normalize(barcode)
        self.in_flight = True

        def done(resolution: BarcodeResolution):
            self.in_flight = False
            on_done(resolution)

        def failed(error: Exception):
            self.in_flight = False
            on_error(error)

        self.runner.submit(self.resolve, done, failed, barcode)
        return True
