"""네트워크 호출을 백그라운드 스레드에서 실행하고 결과를 메인 루프로 전달합니다."""

import queue
import threading
from typing import Any, Callable, Optional


class BackgroundTaskRunner:
    """작업은 데몬 스레드에서 실행하고, 콜백은 항상 메인 루프(after)에서 호출합니다.

    scheduler는 tkinter 루트처럼 after(ms, func) / after_cancel(job_id)를 제공해야 합니다.
    """

    def __init__(self, scheduler, drain_interval_ms: int = 50):
        self.scheduler = scheduler
        self.drain_interval_ms = drain_interval_ms
        self.result_queue: queue.Queue = queue.Queue()
        self.drain_job: Optional[str] = None

    def start(self):
        if self.drain_job is None:
            self.drain_job = self.scheduler.after(self.drain_interval_ms, self._drain)

    def stop(self):
        if self.drain_job:
            self.scheduler.after_cancel(self.drain_job)
            self.drain_job = None

    def submit(self, func: Callable[..., Any], on_success: Optional[Callable[[Any], None]] = None,
               on_error: Optional[Callable[[Exception], None]] = None, *args, **kwargs):
        """func(*args, **kwargs)를 백그라운드에서 실행합니다."""
        def worker():
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                self.result_queue.put((on_error, e))
            else:
                self.result_queue.put((on_success, result))

        threading.Thread(target=worker, daemon=True).start()

    def _drain(self):
        while True:
            try:
                callback, value = self.result_queue.get_nowait()
            except queue.Empty:
                break
            if callback is not None:
                callback(value)
            elif isinstance(value, Exception):
                print(f"백그라운드 작업 오류: {value}")
        self.drain_job = self.scheduler.after(self.drain_interval_ms, self._drain)
