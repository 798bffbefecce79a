"""특화된 UI 컴포넌트들"""

import tkinter as tk
from tkinter import ttk
from typing import List, Dict, Any, Optional, Callable, Sequence

from core.models import CatalogItem, catalog_id, catalog_label, to_float, to_int
from utils.exceptions import ValidationError
from .base_ui import BaseUIComponent, UIUtils


class ScannerInputComponent(BaseUIComponent):
    """바코드 스캐너 입력을 처리하는 컴포넌트"""

    def __init__(self, parent: tk.Widget):
        super().__init__(parent)
        self.entry: Optional[ttk.Entry] = None
        self.resolve_button: Optional[ttk.Button] = None
        self.status_label: Optional[ttk.Label] = None

    def create_widgets(self):
        """스캐너 입력 관련 위젯들을 생성합니다."""
        self.frame = ttk.LabelFrame(self.parent, text="롤 바코드", padding=5)

        # 입력 필드
        input_frame = ttk.Frame(self.frame)
        input_frame.pack(fill="x", padx=5, pady=5)

        ttk.Label(input_frame, text="바코드 스캔:").pack(side="left")
        self.entry = ttk.Entry(input_frame, font=('Arial', 12))
        self.entry.pack(side="left", fill="x", expand=True, padx=(5, 5))
        self.resolve_button = ttk.Button(input_frame, text="조회", style='Default.TButton')
        self.resolve_button.pack(side="left")

        # 상태 표시
        self.status_label = ttk.Label(self.frame, text="스캔 대기 중...", style='Status.Good.TLabel')
        self.status_label.pack(pady=2)

    def setup_layout(self):
        """레이아웃을 설정합니다."""
        self.frame.pack(fill="x", padx=10, pady=5)

    def bind_scan_event(self, callback: Callable[[str], bool]):
        """스캔 이벤트를 바인딩합니다. 조회가 시작되면 입력칸을 비웁니다."""
        def on_scan(event=None):
            if callback(self.entry.get()):
                self.entry.delete(0, 'end')

        self.entry.bind('<Return>', on_scan)
        self.resolve_button.configure(command=on_scan)
        self.entry.focus_set()

    def set_busy(self, busy: bool):
        """조회 중에는 재요청을 막습니다."""
        UIUtils.set_widget_enabled(self.resolve_button, not busy)
        if busy:
            self.set_status("조회 중...", "warning")

    def set_status(self, message: str, status_type: str = "normal"):
        """상태 메시지를 설정합니다."""
        if self.status_label:
            self.status_label.config(text=message)
            if status_type == "error":
                self.status_label.config(style='Status.Error.TLabel')
            elif status_type == "warning":
                self.status_label.config(style='Status.Warning.TLabel')
            else:
                self.status_label.config(style='Status.Good.TLabel')

    def focus_input(self):
        """입력 필드에 포커스를 설정합니다."""
        if self.entry:
            self.entry.focus_set()


class ChannelStatusComponent(BaseUIComponent):
    """측정 장비 한 채널의 연결 상태, 현재 값, 수동 입력란을 표시합니다."""

    def __init__(self, parent: tk.Widget, title: str, unit: str):
        super().__init__(parent)
        self.title = title
        self.unit = unit
        self.status_label: Optional[ttk.Label] = None
        self.value_label: Optional[ttk.Label] = None
        self.manual_frame: Optional[ttk.Frame] = None
        self.manual_entry: Optional[ttk.Entry] = None
        self._manual_visible = False

    def create_widgets(self):
        self.frame = ttk.LabelFrame(self.parent, text=self.title, padding=10)

        top = ttk.Frame(self.frame)
        top.pack(fill="x")
        self.status_label = ttk.Label(top, text="연결 안 됨", style='Status.Error.TLabel')
        self.status_label.pack(side="left")
        ttk.Label(top, text=self.unit).pack(side="right")
        self.value_label = ttk.Label(top, text="0.0", style='Value.TLabel')
        self.value_label.pack(side="right", padx=(0, 5))

        self.manual_frame = ttk.Frame(self.frame)
        self.manual_entry = ttk.Entry(self.manual_frame, width=12)
        self.manual_entry.pack(side="left", padx=(0, 5))
        ttk.Button(self.manual_frame, text="적용",
                   command=lambda: self.trigger_callback('apply', self.manual_entry.get())).pack(side="left")
        self.manual_entry.bind('<Return>', lambda e: self.trigger_callback('apply', self.manual_entry.get()))

    def setup_layout(self):
        self.frame.pack(fill="x", padx=10, pady=5)

    def update_reading(self, connected: bool, value: float):
        if connected:
            self.status_label.config(text="연결됨", style='Status.Good.TLabel')
        else:
            self.status_label.config(text="연결 안 됨", style='Status.Error.TLabel')
        self.value_label.config(text=f"{value:.1f}")

        # 연결이 끊긴 채널만 수동 입력란을 보여준다
        if connected and self._manual_visible:
            self.manual_frame.pack_forget()
            self._manual_visible = False
        elif not connected and not self._manual_visible:
            self.manual_frame.pack(fill="x", pady=(5, 0))
            self._manual_visible = True


class RollFormComponent(BaseUIComponent):
    """롤 정보 입력 폼"""

    FIELDS = [
        ('barCode', "바코드", 'text'),
        ('batchNo', "배치 번호", 'text'),
        ('fabricTypeId', "원단 종류", 'choice'),
        ('color', "색상", 'text'),
        ('machineId', "설비", 'choice'),
        ('width', "폭 (cm)", 'float'),
        ('length', "길이 (m)", 'float'),
        ('weight', "무게 (kg)", 'float'),
        ('notes', "비고", 'text'),
    ]

    def __init__(self, parent: tk.Widget):
        super().__init__(parent)
        self.entries: Dict[str, ttk.Entry] = {}
        self.choices: Dict[str, List[CatalogItem]] = {}
        self.save_button: Optional[ttk.Button] = None

    def create_widgets(self):
        self.frame = ttk.Frame(self.parent, padding=10)
        for row, (key, label, kind) in enumerate(self.FIELDS):
            if kind == 'choice':
                ttk.Label(self.frame, text=label).grid(row=row, column=0, sticky="w", padx=(5, 2), pady=2)
                entry = ttk.Combobox(self.frame, width=28, state="readonly")
                entry.grid(row=row, column=1, sticky="ew", padx=(2, 5), pady=2)
                self.choices[key] = []
            else:
                _, entry = UIUtils.create_labeled_entry(self.frame, label, width=30, row=row)
            self.entries[key] = entry
        self.frame.columnconfigure(1, weight=1)

        self.save_button = ttk.Button(self.frame, text="저장", style='Default.TButton',
                                      command=lambda: self.trigger_callback('save'))
        self.save_button.grid(row=len(self.FIELDS), column=1, sticky="e", pady=(10, 0))

    def setup_layout(self):
        self.frame.pack(fill="both", expand=True)

    def set_choices(self, key: str, items: List[CatalogItem]):
        """선택 목록을 교체합니다. 선택 사항인 설비는 빈 항목을 맨 앞에 둡니다."""
        if self.choices.get(key) == items:
            return
        current = catalog_id(self.choices[key], self.entries[key].get())
        self.choices[key] = list(items)
        labels = [item.label for item in items]
        if key == 'machineId':
            labels.insert(0, "")
        self.entries[key].configure(values=labels)
        self.entries[key].set(catalog_label(self.choices[key], current))

    def set_values(self, values: Dict[str, Any]):
        for key in self.entries:
            self.set_field(key, values.get(key))

    def set_field(self, key: str, value: Any):
        if key in self.choices:
            self.entries[key].set(catalog_label(self.choices[key], to_int(value)))
        elif key in self.entries:
            UIUtils.set_entry_text(self.entries[key], value)

    def get_values(self) -> Dict[str, Any]:
        """입력값을 숫자 필드는 숫자로 변환해 반환합니다."""
        values: Dict[str, Any] = {}
        for key, label, kind in self.FIELDS:
            raw = self.entries[key].get().strip()
            try:
                if kind == 'choice':
                    values[key] = catalog_id(self.choices[key], raw)
                elif kind == 'float':
                    values[key] = to_float(raw)
                else:
                    values[key] = raw
            except ValueError:
                if kind == 'choice':
                    raise ValidationError(f"{label} 목록에서 선택하세요.", field=key)
                raise ValidationError(f"{label} 값은 숫자여야 합니다.", field=key)
        return values

    def set_editable(self, editable: bool, barcode_locked: bool):
        for key, entry in self.entries.items():
            enabled = editable and not (key == 'barCode' and barcode_locked)
            if key in self.choices:
                entry.configure(state="readonly" if enabled else "disabled")
            else:
                UIUtils.set_widget_enabled(entry, enabled)
        UIUtils.set_widget_enabled(self.save_button, editable)


class DataDisplayComponent(BaseUIComponent):
    """데이터를 표시하는 테이블 컴포넌트"""

    def __init__(self, parent: tk.Widget, title: str, columns: List[str],
                 headings: Optional[Sequence[str]] = None):
        super().__init__(parent)
        self.title = title
        self.columns = columns
        self.headings = list(headings) if headings else list(columns)
        self.treeview: Optional[ttk.Treeview] = None
        self.scrollbar: Optional[ttk.Scrollbar] = None
        self._rows: List[tuple] = []

    def create_widgets(self):
        """데이터 표시 위젯들을 생성합니다."""
        self.frame = ttk.LabelFrame(self.parent, text=self.title, padding=5)

        # 트리뷰와 스크롤바 생성
        tree_frame = ttk.Frame(self.frame)
        tree_frame.pack(fill="both", expand=True)

        self.treeview = ttk.Treeview(tree_frame, columns=self.columns, show="headings",
                                     selectmode="browse")
        self.scrollbar = ttk.Scrollbar(tree_frame, orient="vertical", command=self.treeview.yview)
        self.treeview.configure(yscrollcommand=self.scrollbar.set)

        # 컬럼 헤더 설정
        for col, heading in zip(self.columns, self.headings):
            self.treeview.heading(col, text=heading)
            self.treeview.column(col, width=100)

        self.treeview.pack(side="left", fill="both", expand=True)
        self.scrollbar.pack(side="right", fill="y")

    def setup_layout(self):
        """레이아웃을 설정합니다."""
        self.frame.pack(fill="both", expand=True, padx=10, pady=5)

    def set_rows(self, rows: List[tuple]):
        """(iid, values) 목록으로 전체 내용을 교체합니다. 순서는 그대로 유지합니다."""
        # 내용이 같으면 선택 상태를 유지하기 위해 다시 그리지 않는다
        if rows == self._rows:
            return
        self._rows = list(rows)
        self.clear_items()
        for iid, values in rows:
            self.treeview.insert("", "end", iid=str(iid), values=values)

    def clear_items(self):
        """모든 아이템을 제거합니다."""
        if self.treeview:
            for item in self.treeview.get_children():
                self.treeview.delete(item)

    def get_selected_iid(self) -> Optional[str]:
        """선택된 아이템의 iid를 반환합니다."""
        if not self.treeview:
            return None
        selection = self.treeview.selection()
        return selection[0] if selection else None

    def set_column_width(self, column: str, width: int):
        """컬럼 너비를 설정합니다."""
        if self.treeview:
            self.treeview.column(column, width=width)
