import tkinter as tk
from tkinter import ttk, messagebox
import datetime
import os
import sys
import uuid
from typing import Optional

from core.api_client import QualityApiClient
from core.config import ConfigManager, get_application_path
from core.models import FinalizeIntent, format_number, CHANNEL_WEIGHT, CHANNEL_LENGTH, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_REJECTED
from core.tasks import BackgroundTaskRunner
from core.workflow import InspectionWorkflow
from core.workflow_state import TAB_ROLL_INFO, TAB_DEFECTS, VIEW_CLOSED
from ui.base_ui import UIUtils, StyleManager
from ui.components import ScannerInputComponent, ChannelStatusComponent, RollFormComponent, DataDisplayComponent
from ui.dialogs import DefectEntryDialog, SEVERITY_LABELS
from ui.notifier import StatusNotifier
from utils.exceptions import ConfigurationError, ValidationError
from utils.file_handler import ensure_directory_exists, get_safe_filename, load_json_file, delete_file_if_exists
from utils.logger import EventLogger

config = ConfigManager()

STATUS_LABELS = {
    STATUS_ACTIVE: "검사 중",
    STATUS_COMPLETED: "완료",
    STATUS_REJECTED: "불합격",
}

DEFECT_COLUMNS = ['code', 'start', 'end', 'width', 'severity', 'description']
DEFECT_HEADINGS = ["결함 코드", "시작 (m)", "종료 (m)", "폭 (cm)", "심각도", "설명"]


class FabricInspectionProgram:
    DEFAULT_FONT = 'Malgun Gothic'
    COLOR_BG = "#F8F9FA"
    COLOR_SIDEBAR_BG = "#FFFFFF"
    COLOR_TEXT = "#343A40"
    COLOR_PRIMARY = "#0D6EFD"
    COLOR_DEFECT = "#DC3545"

    def __init__(self):
        self.root = tk.Tk()
        app_title = f"{config.get('ui.window_title', '원단 롤 검사 시스템')} ({config.get('app.version', 'v1.0.0')})"
        self.root.title(app_title)
        self.root.geometry(config.get('ui.window_geometry', '1400x800'))
        self.root.configure(bg=self.COLOR_BG)

        self.style_manager = StyleManager()
        self.style_manager.setup_default_styles()

        self.worker_name = ""
        self.event_logger: Optional[EventLogger] = None
        self.workflow: Optional[InspectionWorkflow] = None
        self.defect_dialog: Optional[DefectEntryDialog] = None
        self._rendered_form_version = -1
        self._awaiting_finalize = False

        self.log_dir = os.path.join(get_application_path(), config.get('logging.log_dir', 'logs'))
        ensure_directory_exists(self.log_dir)

        try:
            self.computer_id = hex(uuid.getnode())
        except ValueError:
            import socket
            self.computer_id = socket.gethostname()
        _, ext = os.path.splitext(config.get('logging.session_file', 'session_state.json'))
        self.CURRENT_STATE_FILE = get_safe_filename(f"_current_inspection_state_{self.computer_id}{ext or '.json'}")
        self.session_path = os.path.join(self.log_dir, self.CURRENT_STATE_FILE)

        self.api = QualityApiClient.from_config(config)
        self.runner = BackgroundTaskRunner(self.root)
        self.runner.start()

        self._setup_core_ui_structure()
        self.notifier = StatusNotifier(self.root, self.status_label,
                                       sound_enabled=config.get('inspection.sound_enabled', True))

        self.show_worker_input_screen()

        pedal_key = config.get('inspection.defect_pedal_key', 'F12')
        self.root.bind_all(f"<KeyPress-{pedal_key}>", self.on_pedal_press)
        self.root.protocol("WM_DELETE_WINDOW", self.on_closing)

    def _setup_core_ui_structure(self):
        status_bar = tk.Frame(self.root, bg=self.COLOR_SIDEBAR_BG, bd=1, relief=tk.SUNKEN)
        status_bar.pack(side=tk.BOTTOM, fill=tk.X)
        self.status_label = tk.Label(status_bar, text="준비", anchor=tk.W, bg=self.COLOR_SIDEBAR_BG, fg=self.COLOR_TEXT)
        self.status_label.pack(side=tk.LEFT, padx=10, pady=4)
        self.main_frame = ttk.Frame(self.root)
        self.worker_input_frame = ttk.Frame(self.root)

    def _clear_main_frames(self):
        for frame in [self.main_frame, self.worker_input_frame]:
            frame.pack_forget()
            UIUtils.clear_widget_children(frame)

    # ===================================================================
    # 작업자 / 세션
    # ===================================================================

    def show_worker_input_screen(self):
        self._clear_main_frames()
        self.worker_input_frame.pack(fill=tk.BOTH, expand=True, padx=10, pady=10)
        self.worker_input_frame.grid_rowconfigure(0, weight=1)
        self.worker_input_frame.grid_columnconfigure(0, weight=1)
        center_frame = ttk.Frame(self.worker_input_frame)
        center_frame.grid(row=0, column=0)

        app_title = f"{config.get('ui.window_title', '원단 롤 검사 시스템')} ({config.get('app.version', 'v1.0.0')})"
        ttk.Label(center_frame, text=app_title, font=(self.DEFAULT_FONT, 24, 'bold')).pack(pady=(20, 60))
        ttk.Label(center_frame, text="작업자 이름", font=(self.DEFAULT_FONT, 12)).pack(pady=(10, 5))
        self.worker_entry = tk.Entry(center_frame, width=25, font=(self.DEFAULT_FONT, 18, 'bold'), bd=2,
                                     relief=tk.SOLID, justify='center', highlightcolor=self.COLOR_PRIMARY,
                                     highlightthickness=2)
        self.worker_entry.pack(ipady=12)
        self.worker_entry.bind('<Return>', self.start_work)
        self.worker_entry.focus()
        ttk.Button(center_frame, text="작업 시작", command=self.start_work, width=20).pack(pady=60, ipady=10)

    def _log_file_path(self) -> str:
        base, ext = os.path.splitext(config.get('logging.log_file', 'fabric_inspection_log.csv'))
        today = datetime.date.today().strftime('%Y%m%d')
        return os.path.join(self.log_dir, get_safe_filename(f"{base}_{self.worker_name}_{today}{ext or '.csv'}"))

    def start_work(self, event=None):
        worker_name = self.worker_entry.get().strip()
        if not worker_name:
            UIUtils.show_error_message("오류", "작업자 이름을 입력해주세요.", parent=self.root)
            return
        self.worker_name = worker_name
        if config.get('logging.enabled', True):
            self.event_logger = EventLogger(self._log_file_path(), worker_name)
            self.event_logger.log_event('WORK_START')

        self.workflow = InspectionWorkflow.from_config(config, self.api, self.root, self.runner,
                                                       self.notifier, self.event_logger)
        self.workflow.add_listener(self._render)
        self.workflow.add_field_listener(self._on_form_field_changed)
        self._rendered_form_version = -1

        self.show_inspection_screen()
        self.workflow.start()
        self._load_current_session_state()
        self._render(self.workflow)

    def change_worker(self):
        msg = "작업자를 변경하시겠습니까?"
        if self._has_unfinished_roll():
            msg += "\n\n검사 중인 롤은 다음 로그인 시 이어서 작업할 수 있도록 저장됩니다."
        if UIUtils.ask_yes_no("작업자 변경", msg):
            if self._has_unfinished_roll():
                self.workflow.save_session(self.session_path)
            self._end_work()
            self.show_worker_input_screen()

    def _end_work(self):
        if self.workflow:
            self.workflow.leave_inspection()
            self.workflow = None
        self._close_defect_dialog()
        if self.event_logger:
            self.event_logger.log_event('WORK_END')
            self.event_logger.stop_logger()
            self.event_logger = None
        self.worker_name = ""

    def _has_unfinished_roll(self) -> bool:
        return bool(self.workflow and self.workflow.roll and self.workflow.roll.is_active)

    def _load_current_session_state(self):
        saved = load_json_file(self.session_path)
        if not saved:
            return
        barcode = (saved.get('form') or {}).get('barCode') or "알 수 없음"
        if UIUtils.ask_yes_no("이전 작업 복구", f"이전에 마치지 못한 검사 작업을 이어서 시작하시겠습니까?\n\n· 바코드: {barcode}"):
            if self.workflow.restore_session(self.session_path):
                self.notifier.notify("작업 복구", "이전 검사 작업을 복구했습니다.", 'info')
        delete_file_if_exists(self.session_path)

    # ===================================================================
    # 검사 화면
    # ===================================================================

    def show_inspection_screen(self):
        self._clear_main_frames()
        self.main_frame.pack(fill=tk.BOTH, expand=True, padx=10, pady=10)

        header = ttk.Frame(self.main_frame)
        header.pack(fill=tk.X, pady=(0, 5))
        ttk.Label(header, text=f"작업자: {self.worker_name}", style='Header.TLabel').pack(side=tk.LEFT)
        ttk.Button(header, text="작업자 변경", command=self.change_worker).pack(side=tk.RIGHT)
        ttk.Button(header, text="새 검사", command=self.on_new_inspection).pack(side=tk.RIGHT, padx=5)

        self.paned_window = ttk.PanedWindow(self.main_frame, orient=tk.HORIZONTAL)
        self.paned_window.pack(fill=tk.BOTH, expand=True)
        left_pane = ttk.Frame(self.paned_window)
        right_pane = ttk.Frame(self.paned_window)
        self.paned_window.add(left_pane, weight=1)
        self.paned_window.add(right_pane, weight=3)

        self._create_left_content(left_pane)
        self._create_right_content(right_pane)

    def _create_left_content(self, parent):
        self.scanner = ScannerInputComponent(parent).build()
        self.scanner.bind_scan_event(self.workflow.scan_barcode)

        self.channel_panels = {
            CHANNEL_WEIGHT: ChannelStatusComponent(parent, "저울 (무게)", "kg").build(),
            CHANNEL_LENGTH: ChannelStatusComponent(parent, "미터 카운터 (길이)", "m").build(),
        }
        for channel, panel in self.channel_panels.items():
            panel.set_callback('apply', lambda raw, ch=channel: self.workflow.apply_manual(ch, raw))

    def _create_right_content(self, parent):
        self.notebook = ttk.Notebook(parent)
        self.notebook.pack(fill=tk.BOTH, expand=True)

        self.roll_tab = ttk.Frame(self.notebook)
        self.defects_tab = ttk.Frame(self.notebook)
        self.notebook.add(self.roll_tab, text="롤 정보")
        self.notebook.add(self.defects_tab, text="결함 기록", state='disabled')
        self.notebook.bind('<<NotebookTabChanged>>', self.on_tab_changed)

        self.roll_form = RollFormComponent(self.roll_tab).build()
        self.roll_form.set_callback('save', self.on_save_roll)

        toolbar = ttk.Frame(self.defects_tab, padding=(10, 10, 10, 0))
        toolbar.pack(fill=tk.X)
        self.add_defect_button = ttk.Button(toolbar, text="결함 추가", command=self.on_add_defect)
        self.add_defect_button.pack(side=tk.LEFT)
        pedal_key = config.get('inspection.defect_pedal_key', 'F12')
        self.add_here_button = ttk.Button(toolbar, text=f"현재 위치에 추가 ({pedal_key})",
                                          command=self.on_pedal_press)
        self.add_here_button.pack(side=tk.LEFT, padx=5)
        self.delete_defect_button = ttk.Button(toolbar, text="선택 결함 삭제", command=self.on_delete_defect)
        self.delete_defect_button.pack(side=tk.RIGHT)

        self.defect_table = DataDisplayComponent(self.defects_tab, "결함 목록", DEFECT_COLUMNS, DEFECT_HEADINGS).build()
        self.defect_table.set_column_width('description', 240)

        action_frame = ttk.Frame(parent, padding=(0, 10, 0, 0))
        action_frame.pack(fill=tk.X)
        self.reject_button = ttk.Button(action_frame, text="불합격 처리", style='Reject.TButton',
                                        command=lambda: self.on_finalize(FinalizeIntent.REJECT))
        self.reject_button.pack(side=tk.RIGHT)
        self.complete_button = ttk.Button(action_frame, text="검사 완료", style='Complete.TButton',
                                          command=lambda: self.on_finalize(FinalizeIntent.COMPLETE))
        self.complete_button.pack(side=tk.RIGHT, padx=5)

    # ===================================================================
    # 화면 갱신
    # ===================================================================

    def _render(self, workflow: InspectionWorkflow):
        if workflow is not self.workflow or not hasattr(self, 'notebook') or not self.notebook.winfo_exists():
            return
        state = workflow.state

        self.scanner.set_busy(state.is_scanning)
        if not state.is_scanning:
            if workflow.roll is not None:
                status = STATUS_LABELS.get(workflow.roll.status, workflow.roll.status)
                self.scanner.set_status(f"롤: {workflow.roll.bar_code} ({status})")
            elif state.prefilled_barcode:
                self.scanner.set_status(f"신규 롤: {state.prefilled_barcode}", "warning")
            else:
                self.scanner.set_status("스캔 대기 중...")

        for channel, panel in self.channel_panels.items():
            panel.update_reading(workflow.poller.is_connected(channel), workflow.poller.current_value(channel))

        self.roll_form.set_choices('fabricTypeId', workflow.fabric_types)
        self.roll_form.set_choices('machineId', workflow.machines)
        if workflow.form_version != self._rendered_form_version:
            self.roll_form.set_values(workflow.form)
            self._rendered_form_version = workflow.form_version
        self.roll_form.set_editable(state.can_edit and not state.is_saving,
                                    barcode_locked=not state.is_new_roll)

        self.notebook.tab(self.defects_tab, state='normal' if state.defects_tab_enabled else 'disabled')
        target_tab = self.defects_tab if state.active_tab == TAB_DEFECTS else self.roll_tab
        if self.notebook.select() != str(target_tab):
            self.notebook.select(target_tab)

        self.defect_table.set_rows([
            (defect.id, (defect.defect_code, format_number(defect.start_meter), format_number(defect.end_meter),
                         format_number(defect.width),
                         SEVERITY_LABELS.get(defect.severity, defect.severity), defect.description))
            for defect in workflow.defects
        ])
        can_mutate = bool(workflow.roll and workflow.roll.is_active) and not state.is_finalizing
        for button in [self.add_defect_button, self.add_here_button, self.delete_defect_button]:
            UIUtils.set_widget_enabled(button, can_mutate)
        for button in [self.complete_button, self.reject_button]:
            UIUtils.set_widget_enabled(button, state.can_finalize)

        self._sync_defect_dialog(workflow)
        self._check_finalize_result(workflow)

    def _on_form_field_changed(self, name: str, value):
        if hasattr(self, 'roll_form'):
            self.roll_form.set_field(name, value)

    def _sync_defect_dialog(self, workflow: InspectionWorkflow):
        state = workflow.state
        if state.defect_dialog_open:
            if self.defect_dialog is None or not self.defect_dialog.exists():
                self.defect_dialog = DefectEntryDialog(self.root, workflow.defect_codes, workflow.defect_draft,
                                                       on_submit=workflow.submit_defect,
                                                       on_cancel=workflow.close_defect_dialog)
                self.defect_dialog.show()
            self.defect_dialog.set_busy(state.pending_defect_mutations > 0)
        else:
            self._close_defect_dialog()

    def _close_defect_dialog(self):
        if self.defect_dialog is not None:
            self.defect_dialog.close()
            self.defect_dialog = None
            if hasattr(self, 'scanner'):
                self.scanner.focus_input()

    def _check_finalize_result(self, workflow: InspectionWorkflow):
        state = workflow.state
        if not self._awaiting_finalize or state.is_finalizing:
            return
        self._awaiting_finalize = False
        if state.view == VIEW_CLOSED:
            self.root.after_idle(self._start_next_roll)
        elif state.finalize_intent is not None:
            self.root.after_idle(self._ask_finalize_retry)

    # ===================================================================
    # 이벤트 핸들러
    # ===================================================================

    def on_tab_changed(self, event=None):
        if not self.workflow:
            return
        tab = TAB_DEFECTS if self.notebook.select() == str(self.defects_tab) else TAB_ROLL_INFO
        if tab != self.workflow.state.active_tab:
            self.workflow.select_tab(tab)

    def on_save_roll(self):
        try:
            values = self.roll_form.get_values()
        except ValidationError as e:
            self.notifier.notify("입력 오류", str(e), 'warning')
            return
        self.workflow.submit_roll_form(values)

    def on_add_defect(self):
        self.workflow.open_defect_dialog()

    def on_pedal_press(self, event=None):
        if not self.workflow or self.workflow.state.view == VIEW_CLOSED:
            return
        if self.workflow.state.defect_dialog_open:
            return
        self.workflow.add_defect_at_current_position()

    def on_delete_defect(self):
        iid = self.defect_table.get_selected_iid()
        if iid is None:
            self.notifier.notify("결함 삭제", "삭제할 결함을 목록에서 선택하세요.", 'warning')
            return
        defect = self.workflow.ledger.find(int(iid))
        if defect is None or not self.workflow.request_delete_defect(defect.id):
            return
        msg = f"'{defect.defect_code}' 결함 ({format_number(defect.start_meter)}m ~ {format_number(defect.end_meter)}m)을 삭제하시겠습니까?"
        if UIUtils.ask_yes_no("결함 삭제", msg, parent=self.root):
            self.workflow.confirm_delete_defect()
        else:
            self.workflow.cancel_delete_defect()

    def on_finalize(self, intent: FinalizeIntent):
        if not self.workflow.request_finalize(intent):
            return
        self._ask_finalize_confirm(intent)

    def _ask_finalize_confirm(self, intent: FinalizeIntent, retry: bool = False):
        roll = self.workflow.roll
        action = "검사 완료" if intent is FinalizeIntent.COMPLETE else "불합격"
        msg = f"'{roll.bar_code}' 롤을 {action} 처리하시겠습니까?\n\n처리 후에는 되돌릴 수 없습니다."
        if retry:
            msg = f"처리에 실패했습니다. 다시 시도하시겠습니까?\n\n{msg}"
        if UIUtils.ask_yes_no(action, msg, parent=self.root):
            self._awaiting_finalize = self.workflow.confirm_finalize()
        else:
            self.workflow.cancel_finalize()

    def _ask_finalize_retry(self):
        if self.workflow and self.workflow.state.finalize_intent is not None:
            self._ask_finalize_confirm(self.workflow.state.finalize_intent, retry=True)

    def _start_next_roll(self):
        if self.workflow:
            self.workflow.start_new_inspection()
            self.scanner.focus_input()

    def on_new_inspection(self):
        if self._has_unfinished_roll():
            if not UIUtils.ask_yes_no("새 검사", "검사 중인 롤이 있습니다. 저장된 내용은 유지됩니다.\n새 롤 검사를 시작하시겠습니까?"):
                return
        if self.workflow.start_new_inspection():
            self.scanner.focus_input()

    def on_closing(self):
        if messagebox.askokcancel("종료", "프로그램을 종료하시겠습니까?"):
            if self._has_unfinished_roll():
                if UIUtils.ask_yes_no("작업 저장", "진행 중인 작업을 저장하고 종료할까요?"):
                    self.workflow.save_session(self.session_path)
                else:
                    delete_file_if_exists(self.session_path)
            self._end_work()
            self.runner.stop()
            self.notifier.shutdown()
            self.root.destroy()

    def run(self):
        self.root.mainloop()


if __name__ == "__main__":
    try:
        app = FabricInspectionProgram()
    except ConfigurationError as e:
        UIUtils.show_error_message("설정 오류", str(e))
        sys.exit(1)
    app.run()
