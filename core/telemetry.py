"""측정 장비(저울, 미터 카운터) 연결 상태와 현재 값을 주기적으로 조회합니다."""

from typing import Callable, Dict, List, Optional

from core.models import DeviceReading, CHANNELS, CHANNEL_WEIGHT, CHANNEL_LENGTH
from utils.exceptions import IntegrationError

STATUS_KEYS = {
    CHANNEL_WEIGHT: 'weightConnected',
    CHANNEL_LENGTH: 'meterConnected',
}


class TelemetryPoller:
    """두 측정 채널의 연결 상태와 최신 값을 유지합니다.

    조회 실패는 일시적인 상황으로 보고 운영자에게 알리지 않으며, 마지막으로
    알려진 상태를 그대로 유지한 채 다음 주기에 다시 시도합니다.
    """

    def __init__(self, api, scheduler, runner,
                 status_interval_ms: int = 5000, value_interval_ms: int = 1000):
        self.api = api
        self.scheduler = scheduler
        self.runner = runner
        self.status_interval_ms = status_interval_ms
        self.value_interval_ms = value_interval_ms

        self.readings: Dict[str, DeviceReading] = {channel: DeviceReading() for channel in CHANNELS}
        self.running = False
        self.status_job: Optional[str] = None
        self.value_job: Optional[str] = None
        self._status_in_flight = False
        self._value_in_flight = {channel: False for channel in CHANNELS}
        # 수동 입력이 적용되면 세대가 증가하여 그 이전에 시작된 조회 결과는 버려진다
        self._generation = {channel: 0 for channel in CHANNELS}

        self._value_listeners: List[Callable[[str, float], None]] = []
        self._connection_listeners: List[Callable[[str, bool], None]] = []

    def add_value_listener(self, callback: Callable[[str, float], None]):
        self._value_listeners.append(callback)

    def add_connection_listener(self, callback: Callable[[str, bool], None]):
        self._connection_listeners.append(callback)

    def is_connected(self, channel: str) -> bool:
        return self.readings[channel].connected

    def current_value(self, channel: str) -> float:
        return self.readings[channel].value

    def connectivity(self) -> Dict[str, bool]:
        return {STATUS_KEYS[channel]: self.readings[channel].connected for channel in CHANNELS}

    # ---------------------------------------------------------------
    # 동기 조회 (테스트 및 단발성 호출용)
    # ---------------------------------------------------------------

    def poll_connectivity(self) -> Dict[str, bool]:
        """연결 상태를 조회합니다. 실패하면 이전 상태를 그대로 반환합니다."""
        try:
            status = self.api.get_device_status()
        except IntegrationError:
            return self.connectivity()
        self._apply_status(status)
        return self.connectivity()

    def poll_value(self, channel: str) -> float:
        """연결된 채널의 현재 값을 조회합니다. 실패하면 마지막 값을 유지합니다."""
        if not self.is_connected(channel):
            return self.current_value(channel)
        try:
            value = self.api.get_channel_value(channel)
        except IntegrationError:
            return self.current_value(channel)
        self._apply_value(channel, value)
        return value

    def override(self, channel: str, value: float):
        """수동 입력값을 현재 값으로 기록하고 진행 중인 조회 결과를 무효화합니다."""
        self._generation[channel] += 1
        self.readings[channel].value = value

    # ---------------------------------------------------------------
    # 주기 조회
    # ---------------------------------------------------------------

    def start(self):
        if self.running:
            return
        self.running = True
        self._status_tick()
        self.value_job = self.scheduler.after(self.value_interval_ms, self._value_tick)

    def stop(self):
        """주기 조회를 중단합니다. 진행 중이던 조회 결과는 무시됩니다."""
        self.running = False
        for job_attr in ['status_job', 'value_job']:
            job_id = getattr(self, job_attr)
            if job_id:
                self.scheduler.after_cancel(job_id)
                setattr(self, job_attr, None)
        for channel in CHANNELS:
            self._generation[channel] += 1

    def _status_tick(self):
        if not self.running:
            return
        if not self._status_in_flight:
            self._status_in_flight = True
            self.runner.submit(self.api.get_device_status,
                               self._on_status_success, self._on_status_error)
        self.status_job = self.scheduler.after(self.status_interval_ms, self._status_tick)

    def _on_status_success(self, status: Dict[str, bool]):
        self._status_in_flight = False
        if self.running:
            self._apply_status(status)

    def _on_status_error(self, error: Exception):
        self._status_in_flight = False
        if not isinstance(error, IntegrationError):
            print(f"장비 상태 조회 오류: {error}")

    def _value_tick(self):
        if not self.running:
            return
        for channel in CHANNELS:
            if self.is_connected(channel) and not self._value_in_flight[channel]:
                self._submit_value_read(channel)
        self.value_job = self.scheduler.after(self.value_interval_ms, self._value_tick)

    def _submit_value_read(self, channel: str):
        generation = self._generation[channel]
        self._value_in_flight[channel] = True

        def on_success(value: float):
            self._value_in_flight[channel] = False
            if self.running and generation == self._generation[channel]:
                self._apply_value(channel, value)

        def on_error(error: Exception):
            self._value_in_flight[channel] = False
            if not isinstance(error, IntegrationError):
                print(f"{channel} 값 조회 오류: {error}")

        self.runner.submit(self.api.get_channel_value, on_success, on_error, channel)

    # ---------------------------------------------------------------

    def _apply_status(self, status: Dict[str, bool]):
        for channel in CHANNELS:
            connected = bool(status.get(STATUS_KEYS[channel]))
            reading = self.readings[channel]
            if reading.connected != connected:
                reading.connected = connected
                for callback in self._connection_listeners:
                    callback(channel, connected)

    def _apply_value(self, channel: str, value: float):
        self.readings[channel].value = value
        for callback in self._value_listeners:
            callback(channel, value)
