"""운영자 알림: 하단 상태 표시줄 메시지와 효과음"""

import tkinter as tk
from typing import Optional

import pygame

from utils.file_handler import resource_path


class StatusNotifier:
    """notify(title, message, level) 호출을 상태 표시줄과 효과음으로 보여줍니다.

    level은 'success', 'info', 'warning', 'error' 중 하나입니다.
    """

    COLORS = {
        'success': "#28A745",
        'info': "#0D6EFD",
        'warning': "#F39C12",
        'error': "#DC3545",
    }
    DEFAULT_COLOR = "#343A40"

    def __init__(self, root: tk.Misc, status_label: tk.Label,
                 sound_enabled: bool = True, duration_ms: int = 4000):
        self.root = root
        self.status_label = status_label
        self.duration_ms = duration_ms
        self.status_message_job: Optional[str] = None
        self.success_sound = self.error_sound = None
        if sound_enabled:
            self._load_sounds()

    def _load_sounds(self):
        pygame.init()
        try:
            pygame.mixer.init()
            self.success_sound = pygame.mixer.Sound(resource_path('assets/success.wav'))
            self.error_sound = pygame.mixer.Sound(resource_path('assets/error.wav'))
        except (pygame.error, FileNotFoundError) as e:
            print(f"사운드 파일 로드 실패: {e}")
            self.success_sound = self.error_sound = None

    def notify(self, title: str, message: str, level: str = 'info'):
        self.show_status_message(f"[{title}] {message}", self.COLORS.get(level))
        if level == 'success' and self.success_sound:
            self.success_sound.play()
        elif level == 'error' and self.error_sound:
            self.error_sound.play()

    def show_status_message(self, message: str, color: Optional[str] = None):
        if not self.status_label.winfo_exists():
            return
        if self.status_message_job:
            self.root.after_cancel(self.status_message_job)
        self.status_label['text'], self.status_label['fg'] = message, color or self.DEFAULT_COLOR
        self.status_message_job = self.root.after(self.duration_ms, self._reset_status_message)

    def _reset_status_message(self):
        self.status_message_job = None
        if self.status_label.winfo_exists():
            self.status_label['text'], self.status_label['fg'] = "준비", self.DEFAULT_COLOR

    def cancel(self):
        if self.status_message_job:
            self.root.after_cancel(self.status_message_job)
            self.status_message_job = None

    def shutdown(self):
        self.cancel()
        if pygame.get_init():
            pygame.quit()
