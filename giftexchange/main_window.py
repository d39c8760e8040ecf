import logging
import os
import sys
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel,
    QPushButton, QTableWidget, QTableWidgetItem, QMessageBox, QSizePolicy,
    QPlainTextEdit, QGroupBox, QFormLayout
)

from .errors import ConfigError, DeliveryError, GiftExchangeError, ValidationError
from .services.admin import PreviewResult, generate_preview, send_preview, summarize_report
from .services.emailer import load_smtp_settings_from_env
from .services.registration import register_participant
from .services.store import DocumentStore
from .settings import AppSettings, load_app_settings_from_env
from .widgets.signup_panel import SignupPanel

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, settings: AppSettings | None = None, store: DocumentStore | None = None):
        super().__init__()
        self.settings = settings or load_app_settings_from_env()
        self.store = store or DocumentStore(self.settings.store_path)
        self.setWindowTitle("Secret Santa – Admin")
        self.resize(1100, 780)

        # ===== Signup =====
        self.signup_panel = SignupPanel()
        self.signup_panel.submit_btn.clicked.connect(self._on_signup)

        # ===== Participants =====
        self.count_label = QLabel()
        self.participants_table = QTableWidget(0, 3)
        self.participants_table.setHorizontalHeaderLabels(["Name", "E-mail", "Spouse"])
        self.participants_table.horizontalHeader().setStretchLastSection(True)

        # ===== History =====
        history_group = QGroupBox("Previous years (Giver -> Receiver, comma or newline separated)")
        history_form = QFormLayout(history_group)
        history_form.setLabelAlignment(Qt.AlignRight)
        self.year1_edit = QPlainTextEdit()
        self.year2_edit = QPlainTextEdit()
        history_form.addRow(QLabel("Last year:"), self.year1_edit)
        history_form.addRow(QLabel("Year before:"), self.year2_edit)
        self.save_history_btn = QPushButton("Save history")
        self.save_history_btn.clicked.connect(self._on_save_history)
        history_form.addRow(self.save_history_btn)

        # ===== Action & results =====
        self.preview_btn = QPushButton("Generate preview")
        self.preview_btn.clicked.connect(self._on_preview)
        self.reveal_btn = QPushButton("Reveal matches")
        self.reveal_btn.setCheckable(True)
        self.reveal_btn.setEnabled(False)
        self.reveal_btn.toggled.connect(self._on_reveal_toggled)
        self.send_btn = QPushButton("Send emails")
        self.send_btn.setEnabled(False)
        self.send_btn.clicked.connect(self._on_send_emails)
        self.clear_btn = QPushButton("Clear all")
        self.clear_btn.clicked.connect(self._on_clear_all)

        self.results_table = QTableWidget(0, 2)
        self.results_table.setHorizontalHeaderLabels(["Giver", "Receiver"])
        self.results_table.horizontalHeader().setStretchLastSection(True)
        self.results_table.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.results_table.hide()
        self.hidden_label = QLabel('Matches are hidden. Click "Reveal matches" if you need to peek.')
        self.hidden_label.hide()

        # ===== Layout =====
        central = QWidget()
        root = QHBoxLayout(central)
        root.addWidget(self.signup_panel, stretch=1)

        right = QWidget()
        right_l = QVBoxLayout(right)
        right_l.addWidget(self.count_label)
        right_l.addWidget(self.participants_table, stretch=1)
        right_l.addWidget(history_group)

        actions = QWidget()
        actions_l = QHBoxLayout(actions)
        actions_l.addWidget(self.preview_btn)
        actions_l.addWidget(self.reveal_btn)
        actions_l.addWidget(self.send_btn)
        actions_l.addStretch(1)
        actions_l.addWidget(self.clear_btn)

        right_l.addWidget(actions)
        right_l.addWidget(self.hidden_label)
        right_l.addWidget(self.results_table, stretch=1)
        root.addWidget(right, stretch=2)
        self.setCentralWidget(central)

        # State
        self._preview: PreviewResult | None = None
        self._refresh()

    # ---- Helpers ----
    def _refresh(self):
        try:
            participants = self.store.list_participants()
            year1, year2 = self.store.historical_blocks()
            count = self.store.participant_count()
        except GiftExchangeError as e:
            QMessageBox.critical(self, "Store error", str(e))
            return
        self.participants_table.setRowCount(len(participants))
        for row, p in enumerate(participants):
            self.participants_table.setItem(row, 0, QTableWidgetItem(p.name))
            self.participants_table.setItem(row, 1, QTableWidgetItem(p.email))
            self.participants_table.setItem(row, 2, QTableWidgetItem(p.spouse_name or ""))
        self.participants_table.resizeColumnsToContents()
        self.count_label.setText(f"{count} of {self.settings.participant_target} signed up")
        self.year1_edit.setPlainText(year1)
        self.year2_edit.setPlainText(year2)

    def _reset_preview(self):
        self._preview = None
        self.results_table.setRowCount(0)
        self.results_table.hide()
        self.hidden_label.hide()
        self.reveal_btn.setChecked(False)
        self.reveal_btn.setEnabled(False)
        self.send_btn.setEnabled(False)

    def _show_results(self, visible: bool):
        if not self._preview or not self._preview.ok:
            return
        self.hidden_label.setVisible(not visible)
        self.results_table.setVisible(visible)
        if not visible:
            self.results_table.setRowCount(0)
            return
        self.results_table.setRowCount(len(self._preview.assignments))
        for row, a in enumerate(self._preview.assignments):
            self.results_table.setItem(row, 0, QTableWidgetItem(a.giver.name))
            self.results_table.setItem(row, 1, QTableWidgetItem(a.receiver.name))
        self.results_table.resizeColumnsToContents()
        self.results_table.horizontalHeader().setStretchLastSection(True)

    # ---- Slots ----
    def _on_signup(self):
        values = self.signup_panel.values()
        try:
            participant = register_participant(self.store, target=self.settings.participant_target, **values)
        except ValidationError as e:
            QMessageBox.warning(self, "Invalid signup", str(e))
            return
        except GiftExchangeError as e:
            QMessageBox.critical(self, "Signup failed", f"Could not save the signup: {e}")
            return
        self.signup_panel.clear()
        self._reset_preview()
        self._refresh()
        QMessageBox.information(self, "Signed up", f"{participant.name} is on the list!")

    def _on_save_history(self):
        try:
            self.store.update_historical_pairings(
                year1=self.year1_edit.toPlainText(), year2=self.year2_edit.toPlainText()
            )
        except GiftExchangeError as e:
            QMessageBox.critical(self, "Store error", str(e))
            return
        self._reset_preview()
        QMessageBox.information(self, "Saved", "Historical pairings saved.")

    def _on_preview(self):
        self._reset_preview()
        try:
            preview = generate_preview(self.store, self.settings)
        except GiftExchangeError as e:
            QMessageBox.critical(self, "Store error", str(e))
            return
        if not preview.ok:
            title = "Invalid input" if preview.error_kind == "validation" else "No valid assignment"
            QMessageBox.warning(self, title, preview.message)
            return
        self._preview = preview
        self.reveal_btn.setEnabled(not self.settings.super_secret)
        self.send_btn.setEnabled(True)
        self._show_results(False)
        QMessageBox.information(
            self, "Preview ready",
            f"{preview.message} Reveal matches to double-check, or send emails when ready."
        )

    def _on_reveal_toggled(self, checked: bool):
        self.reveal_btn.setText("Hide matches" if checked else "Reveal matches")
        self._show_results(checked)

    def _on_send_emails(self):
        if not self._preview or not self._preview.ok:
            QMessageBox.information(self, "No preview", "Generate a preview first, then click Send emails.")
            return
        answer = QMessageBox.question(self, "Send emails", "Send Secret Santa assignments to everyone now?")
        if answer != QMessageBox.Yes:
            return
        try:
            smtp = load_smtp_settings_from_env()
        except ConfigError as e:
            QMessageBox.critical(self, "SMTP configuration error", str(e))
            return
        try:
            report = send_preview(self._preview, smtp)
        except DeliveryError as e:
            QMessageBox.critical(self, "Sending failed", f"Error while sending: {e}")
            return
        self._reset_preview()
        if report.ok:
            QMessageBox.information(self, "Emails sent", summarize_report(report))
        else:
            QMessageBox.warning(self, "Emails partially sent", summarize_report(report))

    def _on_clear_all(self):
        answer = QMessageBox.question(self, "Clear all", "This will remove everyone who has signed up. Continue?")
        if answer != QMessageBox.Yes:
            return
        try:
            removed = self.store.clear_participants()
        except GiftExchangeError as e:
            QMessageBox.critical(self, "Store error", f"Unable to clear participants: {e}")
            return
        self._reset_preview()
        self._refresh()
        QMessageBox.information(self, "Cleared", f"Removed {removed} participants.")


def run_app():
    logging.basicConfig(
        level=os.getenv("GIFTEXCHANGE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QApplication(sys.argv)
    try:
        settings = load_app_settings_from_env()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(1)
    win = MainWindow(settings)
    win.show()
    sys.exit(app.exec())
