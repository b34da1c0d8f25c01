from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from PySide6 import QtCore, QtGui, QtWidgets

from ..excel_writer import export_rows
from ..mutations import OperationResult
from ..service import EditorService


class OperationWorker(QtCore.QThread):
    """Runs one service call off the UI thread."""

    done = QtCore.Signal(object)

    def __init__(self, call: Callable[[], OperationResult], parent=None):
        super().__init__(parent)
        self.call = call

    def run(self):
        try:
            result = self.call()
        except Exception as exc:
            result = OperationResult.failure(str(exc))
        self.done.emit(result)


class MainWindow(QtWidgets.QMainWindow):

    def __init__(self, service: EditorService):

        super().__init__()

        self.setWindowTitle("Peacock Save Editor")

        self.resize(900, 640)

        self.service = service

        self._worker: Optional[OperationWorker] = None

        self._connected = False

        central = QtWidgets.QWidget()

        self.setCentralWidget(central)

        layout = QtWidgets.QVBoxLayout(central)

        self.lblStatus = QtWidgets.QLabel("Peacock: searching...")
        self.statusIndicator = QtWidgets.QFrame()
        self.statusIndicator.setObjectName("statusIndicator")
        self.statusIndicator.setFixedSize(12, 12)
        self._set_status_indicator(False)

        self.btnRefresh = QtWidgets.QPushButton("Refresh")
        self.btnRefresh.clicked.connect(self.on_refresh)

        status_row = QtWidgets.QHBoxLayout()
        status_row.addWidget(self.statusIndicator)
        status_row.addSpacing(6)
        status_row.addWidget(self.lblStatus)
        status_row.addStretch(1)
        status_row.addWidget(self.btnRefresh)
        layout.addLayout(status_row)

        self.cmbProfile = QtWidgets.QComboBox()
        profile_row = QtWidgets.QHBoxLayout()
        profile_row.addWidget(QtWidgets.QLabel("Profile:"))
        profile_row.addWidget(self.cmbProfile, 1)
        layout.addLayout(profile_row)

        actions = QtWidgets.QGridLayout()
        buttons = [
            ("Unlock all content", self.on_unlock_content),
            ("Max all mastery", lambda: self._run(lambda: self.service.max_all_mastery(self.profile_id()), reload=True)),
            ("Unlock challenges", lambda: self._run(lambda: self.service.unlock("challenges", None, self.profile_id()), reload=True)),
            ("Unlock escalations", lambda: self._run(lambda: self.service.unlock("escalations", None, self.profile_id()), reload=True)),
            ("Unlock stories", lambda: self._run(lambda: self.service.unlock("stories", None, self.profile_id()), reload=True)),
            ("Lock stories", lambda: self._run(lambda: self.service.lock("stories", None, self.profile_id()), reload=True)),
            ("Create backup", lambda: self._run(lambda: self.service.create_backup(self.profile_id()))),
            ("Restore backup", self.on_restore),
            ("Reset all progress", self.on_reset),
        ]
        self._action_buttons = []
        for index, (label, handler) in enumerate(buttons):
            btn = QtWidgets.QPushButton(label)
            btn.clicked.connect(handler)
            actions.addWidget(btn, index // 3, index % 3)
            self._action_buttons.append(btn)
        layout.addLayout(actions)

        edit_row = QtWidgets.QHBoxLayout()
        self.spnLevel = QtWidgets.QSpinBox()
        self.spnLevel.setRange(1, 7500)
        self.spnPrestige = QtWidgets.QSpinBox()
        self.spnPrestige.setRange(0, 100)
        self.btnApply = QtWidgets.QPushButton("Apply level / prestige")
        self.btnApply.clicked.connect(self.on_apply_profile)
        edit_row.addWidget(QtWidgets.QLabel("Level:"))
        edit_row.addWidget(self.spnLevel)
        edit_row.addWidget(QtWidgets.QLabel("Prestige:"))
        edit_row.addWidget(self.spnPrestige)
        edit_row.addWidget(self.btnApply)
        edit_row.addStretch(1)
        layout.addLayout(edit_row)
        self._action_buttons.append(self.btnApply)

        self.cmbExportKind = QtWidgets.QComboBox()
        for kind in ("challenges", "escalations", "stories", "locations", "profiles", "activity"):
            self.cmbExportKind.addItem(kind.capitalize(), kind)
        self.cmbExportFormat = QtWidgets.QComboBox()
        self.cmbExportFormat.addItem("Excel (.xlsx)", "xlsx")
        self.cmbExportFormat.addItem("CSV (.csv)", "csv")
        self.btnExport = QtWidgets.QPushButton("Export")
        self.btnExport.clicked.connect(self.on_export)
        export_row = QtWidgets.QHBoxLayout()
        export_row.addWidget(self.btnExport)
        export_row.addWidget(self.cmbExportKind)
        export_row.addWidget(QtWidgets.QLabel("Format:"))
        export_row.addWidget(self.cmbExportFormat)
        export_row.addStretch(1)
        layout.addLayout(export_row)

        self.activityList = QtWidgets.QListWidget()
        layout.addWidget(QtWidgets.QLabel("Recent activity"))
        layout.addWidget(self.activityList)

        self.log = QtWidgets.QTextEdit()
        self.log.setReadOnly(True)
        self.log.setMaximumHeight(120)
        layout.addWidget(self.log)

        self._apply_dark_palette()
        self.on_refresh()

    def _set_status_indicator(self, connected: bool) -> None:
        color = "#27ae60" if connected else "#c0392b"
        base = "QFrame#statusIndicator { border: 1px solid #404040; border-radius: 6px; background-color: %s; }"
        self.statusIndicator.setStyleSheet(base % color)

    def _apply_dark_palette(self) -> None:
        app = QtWidgets.QApplication.instance()
        if not isinstance(app, QtWidgets.QApplication):
            return
        QtWidgets.QApplication.setStyle("Fusion")
        palette = QtGui.QPalette()
        palette.setColor(QtGui.QPalette.ColorRole.Window, QtGui.QColor(53, 53, 53))
        palette.setColor(QtGui.QPalette.ColorRole.WindowText, QtGui.QColorConstants.White)
        palette.setColor(QtGui.QPalette.ColorRole.Base, QtGui.QColor(35, 35, 35))
        palette.setColor(QtGui.QPalette.ColorRole.Text, QtGui.QColorConstants.White)
        palette.setColor(QtGui.QPalette.ColorRole.Button, QtGui.QColor(53, 53, 53))
        palette.setColor(QtGui.QPalette.ColorRole.ButtonText, QtGui.QColorConstants.White)
        palette.setColor(QtGui.QPalette.ColorRole.Highlight, QtGui.QColor(42, 130, 218))
        app.setPalette(palette)

    def profile_id(self) -> Optional[str]:
        data = self.cmbProfile.currentData()
        return data if isinstance(data, str) else None

    def _busy(self, busy: bool) -> None:
        for btn in self._action_buttons + [self.btnRefresh, self.btnExport]:
            btn.setEnabled(not busy)

    def _run(self, call: Callable[[], OperationResult], reload: bool = False,
             on_done: Optional[Callable[[OperationResult], None]] = None) -> None:
        if self._worker is not None:
            return
        self._busy(True)
        self._worker = OperationWorker(call, self)

        def finished(result: Any) -> None:
            self._worker = None
            self._busy(False)
            if on_done is not None:
                on_done(result)
            else:
                self._report(result)
            if reload:
                self.refresh_activity()

        self._worker.done.connect(finished)
        self._worker.start()

    def _report(self, result: OperationResult) -> None:
        self.log.append(result.message or result.status)
        if result.status == "error":
            QtWidgets.QMessageBox.critical(self, "Peacock Save Editor", result.message)
        elif result.status == "not_found":
            QtWidgets.QMessageBox.warning(self, "Peacock Save Editor", result.message)

    def on_refresh(self):
        self._run(self.service.status, on_done=self._on_status)

    def _on_status(self, result: OperationResult) -> None:
        data = result.data or {}
        connected = bool(data.get("connected"))
        self._connected = connected
        self._set_status_indicator(connected)
        self.lblStatus.setText(data.get("message") or result.message)
        if connected:
            self._run(self.service.list_profiles, on_done=self._on_profiles)

    def _on_profiles(self, result: OperationResult) -> None:
        self.cmbProfile.clear()
        for summary in result.data or []:
            label = f"{summary['id']}  (level {summary['level']}, prestige {summary['prestige']})"
            self.cmbProfile.addItem(label, summary["id"])
        if result.data:
            first = result.data[0]
            self.spnLevel.setValue(int(first["level"]))
            self.spnPrestige.setValue(int(first["prestige"]))
        self.refresh_activity()

    def refresh_activity(self) -> None:
        if not self._connected:
            return
        self._run(self.service.activities, on_done=self._on_activities)

    def _on_activities(self, result: OperationResult) -> None:
        self.activityList.clear()
        for record in result.data or []:
            self.activityList.addItem(f"{record['timestamp']}  [{record['type']}]  {record['description']}")

    def _confirm(self, title: str, text: str) -> bool:
        answer = QtWidgets.QMessageBox.question(self, title, text)
        return answer == QtWidgets.QMessageBox.StandardButton.Yes

    def on_unlock_content(self):
        if self._confirm("Unlock all content", "Unlock every challenge, escalation, story and max all mastery?"):
            self._run(lambda: self.service.unlock_all_content(self.profile_id()), reload=True)

    def on_restore(self):
        if self._confirm("Restore backup", "Overwrite the profile with its most recent backup?"):
            self._run(lambda: self.service.restore_backup(self.profile_id()), reload=True)

    def on_reset(self):
        if self._confirm("Reset all progress", "Reset the profile to level 1 and clear all unlocks?"):
            self._run(lambda: self.service.reset_all(self.profile_id()), reload=True)

    def on_apply_profile(self):
        level, prestige = self.spnLevel.value(), self.spnPrestige.value()
        self._run(
            lambda: self.service.update_profile(self.profile_id(), level=level, prestige=prestige),
            reload=True,
        )

    def on_export(self):
        kind = self.cmbExportKind.currentData()
        fmt = self.cmbExportFormat.currentData()
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export", f"{kind}.{fmt}", f"{fmt.upper()} files (*.{fmt})"
        )
        if not path:
            return
        readers = {
            "challenges": self.service.challenges,
            "escalations": self.service.escalations,
            "stories": self.service.stories,
            "locations": self.service.locations,
            "profiles": self.service.list_profiles,
            "activity": self.service.activities,
        }

        def call() -> OperationResult:
            listing = readers[kind]()
            if not listing.success:
                return listing
            out = export_rows(kind, listing.data, Path(path), fmt)
            return OperationResult.ok(f"Exported {len(listing.data)} {kind} to {out}")

        self._run(call)
