from typing import Dict, List, Tuple
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QGroupBox, QLineEdit, QPlainTextEdit, QLabel, QGridLayout, QPushButton
)

from ..models.participants import MAX_QUICK_PICKS


class SignupPanel(QWidget):
    """
    Signup form for one participant:
      - name, email, spouse (QLineEdit)
      - wishlist (QPlainTextEdit)
      - up to three quick picks, each a title and a link (QLineEdit)
    Exposes:
      - submit_btn: QPushButton the window connects to its signup slot
      - values(): dict of trimmed field values plus quick_picks [(title, link), ...]
    """
    def __init__(self):
        super().__init__()
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setAlignment(Qt.AlignTop)

        person_group = QGroupBox("Sign up")
        g = QGridLayout(person_group)
        self.name_edit = QLineEdit()
        self.name_edit.setPlaceholderText("First name")
        self.email_edit = QLineEdit()
        self.email_edit.setPlaceholderText("name@example.com")
        self.spouse_edit = QLineEdit()
        self.spouse_edit.setPlaceholderText("Spouse's first name (optional)")
        self.wishlist_edit = QPlainTextEdit()
        self.wishlist_edit.setPlaceholderText("Wish list")
        g.addWidget(QLabel("Name"), 0, 0)
        g.addWidget(self.name_edit, 0, 1)
        g.addWidget(QLabel("E-mail"), 1, 0)
        g.addWidget(self.email_edit, 1, 1)
        g.addWidget(QLabel("Spouse"), 2, 0)
        g.addWidget(self.spouse_edit, 2, 1)
        g.addWidget(QLabel("Wish list"), 3, 0)
        g.addWidget(self.wishlist_edit, 3, 1)

        picks_group = QGroupBox("Quick picks")
        pg = QGridLayout(picks_group)
        self.quick_pick_rows: List[Tuple[QLineEdit, QLineEdit]] = []
        for i in range(MAX_QUICK_PICKS):
            title = QLineEdit()
            title.setPlaceholderText(f"Quick pick {i + 1}")
            link = QLineEdit()
            link.setPlaceholderText("https://")
            pg.addWidget(title, i, 0)
            pg.addWidget(link, i, 1)
            self.quick_pick_rows.append((title, link))

        self.submit_btn = QPushButton("Sign up")

        layout.addWidget(person_group)
        layout.addWidget(picks_group)
        layout.addWidget(self.submit_btn, alignment=Qt.AlignLeft)

    def values(self) -> Dict[str, object]:
        return {
            "name": self.name_edit.text().strip(),
            "email": self.email_edit.text().strip(),
            "spouse_name": self.spouse_edit.text().strip(),
            "wishlist": self.wishlist_edit.toPlainText().strip(),
            "quick_picks": [(t.text().strip(), l.text().strip()) for t, l in self.quick_pick_rows],
        }

    def clear(self):
        for edit in (self.name_edit, self.email_edit, self.spouse_edit):
            edit.clear()
        self.wishlist_edit.clear()
        for title, link in self.quick_pick_rows:
            title.clear()
            link.clear()
