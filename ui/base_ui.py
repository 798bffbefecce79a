"""기본 UI 컴포넌트와 유틸리티 클래스"""

import tkinter as tk
from tkinter import ttk, messagebox
from typing import Optional, Callable, Dict, Any
from abc import ABC, abstractmethod


class BaseUIComponent(ABC):
    """UI 컴포넌트의 기본 클래스"""

    def __init__(self, parent: tk.Widget):
        self.parent = parent
        self.frame = None
        self.callbacks: Dict[str, Callable] = {}

    @abstractmethod
    def create_widgets(self):
        """위젯들을 생성합니다."""
        pass

    @abstractmethod
    def setup_layout(self):
        """레이아웃을 설정합니다."""
        pass

    def build(self):
        """위젯 생성과 배치를 한 번에 수행합니다."""
        self.create_widgets()
        self.setup_layout()
        return self

    def set_callback(self, event_name: str, callback: Callable):
        """콜백 함수를 설정합니다."""
        self.callbacks[event_name] = callback

    def trigger_callback(self, event_name: str, *args, **kwargs):
        """콜백 함수를 실행합니다."""
        if event_name in self.callbacks:
            return self.callbacks[event_name](*args, **kwargs)


class UIUtils:
    """UI 관련 유틸리티 함수들"""

    @staticmethod
    def create_labeled_entry(parent: tk.Widget, label_text: str,
                           width: int = 20, row: int = 0, column: int = 0,
                           sticky: str = "ew") -> tuple[ttk.Label, ttk.Entry]:
        """라벨과 엔트리를 함께 생성합니다."""
        label = ttk.Label(parent, text=label_text)
        label.grid(row=row, column=column, sticky="w", padx=(5, 2), pady=2)

        entry = ttk.Entry(parent, width=width)
        entry.grid(row=row, column=column+1, sticky=sticky, padx=(2, 5), pady=2)

        return label, entry

    @staticmethod
    def set_entry_text(entry: ttk.Entry, value: Any):
        """엔트리 내용을 교체합니다. None은 빈 문자열로 표시합니다."""
        entry.delete(0, 'end')
        if value is not None:
            entry.insert(0, str(value))

    @staticmethod
    def set_widget_enabled(widget: tk.Widget, enabled: bool):
        widget.configure(state=tk.NORMAL if enabled else tk.DISABLED)

    @staticmethod
    def show_error_message(title: str, message: str, parent: Optional[tk.Widget] = None):
        """에러 메시지를 표시합니다."""
        messagebox.showerror(title, message, parent=parent)

    @staticmethod
    def ask_yes_no(title: str, message: str, parent: Optional[tk.Widget] = None) -> bool:
        """예/아니오 확인 대화상자를 표시합니다."""
        return messagebox.askyesno(title, message, parent=parent)

    @staticmethod
    def clear_widget_children(widget: tk.Widget):
        """위젯의 모든 자식 위젯을 제거합니다."""
        for child in widget.winfo_children():
            child.destroy()


class StyleManager:
    """UI 스타일을 관리하는 클래스"""

    COLOR_SUCCESS = "#28A745"
    COLOR_DEFECT = "#DC3545"
    COLOR_WARNING = "#F39C12"
    COLOR_TEXT = "#343A40"

    def __init__(self):
        self.style = ttk.Style()

    def setup_default_styles(self):
        """기본 스타일들을 설정합니다."""
        # 기본 버튼 스타일
        self.style.configure('Default.TButton', padding=(10, 5))
        self.style.configure('Complete.TButton', padding=(14, 6), foreground=self.COLOR_SUCCESS)
        self.style.configure('Reject.TButton', padding=(14, 6), foreground=self.COLOR_DEFECT)

        # 헤더 스타일
        self.style.configure('Header.TLabel', font=('Arial', 12, 'bold'))
        self.style.configure('Value.TLabel', font=('Arial', 22, 'bold'))

        # 상태 표시 스타일
        self.style.configure('Status.Good.TLabel', foreground=self.COLOR_SUCCESS)
        self.style.configure('Status.Error.TLabel', foreground=self.COLOR_DEFECT)
        self.style.configure('Status.Warning.TLabel', foreground=self.COLOR_WARNING)
