"""팝업 대화상자"""

import tkinter as tk
from tkinter import ttk
from typing import Any, Callable, Dict, List, Optional

from core.models import DefectCode, DefectDraft, SEVERITY_LEVELS, format_number

SEVERITY_LABELS = {
    "low": "낮음",
    "medium": "보통",
    "high": "높음",
}


class DefectEntryDialog:
    """결함 한 건을 입력받는 팝업 창입니다.

    저장을 누르면 입력값을 그대로 on_submit에 넘기고, 창을 닫는 것은
    호출한 쪽(작업 흐름 상태)이 결정합니다. 저장에 실패하면 창은 열린 채로
    남아 입력값을 고쳐 다시 저장할 수 있습니다.
    """

    def __init__(self, root: tk.Misc, defect_codes: List[DefectCode],
                 draft: Optional[DefectDraft],
                 on_submit: Callable[[Dict[str, Any]], bool],
                 on_cancel: Callable[[], None]):
        self.root = root
        self.defect_codes = defect_codes
        self.draft = draft or DefectDraft()
        self.on_submit = on_submit
        self.on_cancel = on_cancel
        self.popup: Optional[tk.Toplevel] = None
        self.vars: Dict[str, tk.StringVar] = {}
        self.save_button: Optional[ttk.Button] = None

    def show(self):
        popup = tk.Toplevel(self.root)
        popup.title("결함 기록")
        popup.geometry("480x360")
        popup.transient(self.root)
        popup.grab_set()
        popup.protocol("WM_DELETE_WINDOW", self.on_cancel)
        self.popup = popup

        main_frame = ttk.Frame(popup, padding=20)
        main_frame.pack(fill=tk.BOTH, expand=True)
        main_frame.columnconfigure(1, weight=1)

        code_labels = [code.label for code in self.defect_codes]
        self.vars['defectCode'] = tk.StringVar(value=self._label_for(self.draft.defect_code))
        ttk.Label(main_frame, text="결함 코드").grid(row=0, column=0, sticky="w", pady=4)
        code_combo = ttk.Combobox(main_frame, textvariable=self.vars['defectCode'],
                                  values=code_labels, state="readonly")
        code_combo.grid(row=0, column=1, sticky="ew", pady=4)

        numeric_fields = [
            ('startMeter', "시작 위치 (m)", self.draft.start_meter),
            ('endMeter', "종료 위치 (m)", self.draft.end_meter),
            ('width', "폭 (cm)", self.draft.width),
        ]
        for row, (key, label, value) in enumerate(numeric_fields, start=1):
            self.vars[key] = tk.StringVar(value=format_number(value))
            ttk.Label(main_frame, text=label).grid(row=row, column=0, sticky="w", pady=4)
            entry = ttk.Entry(main_frame, textvariable=self.vars[key])
            entry.grid(row=row, column=1, sticky="ew", pady=4)
            entry.bind('<Return>', lambda e: self._on_confirm())

        self.vars['severity'] = tk.StringVar(value=SEVERITY_LABELS.get(self.draft.severity, "보통"))
        ttk.Label(main_frame, text="심각도").grid(row=4, column=0, sticky="w", pady=4)
        ttk.Combobox(main_frame, textvariable=self.vars['severity'],
                     values=[SEVERITY_LABELS[level] for level in SEVERITY_LEVELS],
                     state="readonly").grid(row=4, column=1, sticky="ew", pady=4)

        self.vars['description'] = tk.StringVar(value=self.draft.description)
        ttk.Label(main_frame, text="설명").grid(row=5, column=0, sticky="w", pady=4)
        ttk.Entry(main_frame, textvariable=self.vars['description']).grid(row=5, column=1, sticky="ew", pady=4)

        button_frame = ttk.Frame(main_frame)
        button_frame.grid(row=6, column=0, columnspan=2, pady=(20, 0))

        self.save_button = ttk.Button(button_frame, text="저장", command=self._on_confirm)
        self.save_button.pack(side=tk.LEFT, padx=10)
        ttk.Button(button_frame, text="취소", command=self.on_cancel).pack(side=tk.LEFT)

        code_combo.focus_set()

    def _label_for(self, code: str) -> str:
        for defect_code in self.defect_codes:
            if defect_code.code == code:
                return defect_code.label
        return code

    def _code_from_label(self, label: str) -> str:
        for defect_code in self.defect_codes:
            if defect_code.label == label:
                return defect_code.code
        return label.strip()

    def get_values(self) -> Dict[str, Any]:
        """입력값을 반환합니다. 숫자 검증은 저장하는 쪽에서 합니다."""
        severity_label = self.vars['severity'].get()
        severity = next((level for level, label in SEVERITY_LABELS.items()
                         if label == severity_label), "medium")
        return {
            'defectCode': self._code_from_label(self.vars['defectCode'].get()),
            'startMeter': self.vars['startMeter'].get(),
            'endMeter': self.vars['endMeter'].get(),
            'width': self.vars['width'].get(),
            'severity': severity,
            'description': self.vars['description'].get(),
        }

    def _on_confirm(self):
        self.on_submit(self.get_values())

    def set_busy(self, busy: bool):
        if self.save_button and self.exists():
            self.save_button.configure(state=tk.DISABLED if busy else tk.NORMAL)

    def exists(self) -> bool:
        return self.popup is not None and bool(self.popup.winfo_exists())

    def close(self):
        if self.exists():
            self.popup.grab_release()
            self.popup.destroy()
        self.popup = None
