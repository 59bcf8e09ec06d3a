#!/usr/bin/env python3
"""
Desk Calculator - immediate-execution calculator with BIN/HEX conversion
and a shared, newest-first calculation history.
"""

import os
import sys
import json
import ctypes
import logging
from pathlib import Path
from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QGridLayout, QPushButton, QLabel, QDialog, QDialogButtonBox,
    QCheckBox, QFontDialog, QScrollArea, QFrame, QMessageBox, QMenu,
    QListWidget, QAbstractItemView
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QFont, QKeyEvent, QKeySequence, QAction
import qdarktheme

import engine
from engine import CalculatorEngine
from history import History

logger = logging.getLogger("calculator")

DEFAULT_CONFIG = {
    "display_font": None,
    "show_history_panel": True,
    "log_level": "WARNING",
}

# Key grid, 5 columns, in display order
KEY_ROWS = [
    ["AC", "DEL", "%", "÷", "√"],
    ["7", "8", "9", "×", "xʸ"],
    ["4", "5", "6", "−", "1/x"],
    ["1", "2", "3", "+", "BIN"],
    ["+/-", "0", ".", "=", "HEX"],
]

# Keyboard text -> key id
KEY_SHORTCUTS = {
    ".": ".", ",": ".",
    "+": "+", "-": "−", "*": "×", "/": "÷",
    "^": "xʸ", "%": "%", "=": "=",
    "R": "√", "I": "1/x", "B": "BIN", "H": "HEX", "D": "DEC",
}

KEY_COLORS = {
    "digit": "#3a3a2a",
    "operator": "#4a3520",
    "clear": "#c76a00",
    "clear_active": "#2e7d32",
}

open_windows = []


def get_app_path():
    """Resolve the correct path for both script and frozen (PyInstaller) execution."""
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def setup_logging(level_name=None):
    """Configure the 'calculator' logger once"""
    level_name = (os.getenv("CALC_LOG_LEVEL") or level_name or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)

    logger.setLevel(level)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    return logger


def load_config(path):
    """Defaults merged with the JSON file at `path`, if readable"""
    config = dict(DEFAULT_CONFIG)
    if path.exists():
        try:
            with open(path, 'r') as f:
                saved_config = json.load(f)
            if isinstance(saved_config, dict):
                config.update(saved_config)
            else:
                logger.warning("Ignoring config %s: not a JSON object", path)
        except (OSError, ValueError) as e:
            logger.error("Error loading config: %s", e)
    return config


def save_config(path, config):
    try:
        with open(path, 'w') as f:
            json.dump(config, f, indent=4)
    except OSError as e:
        logger.error("Error saving config: %s", e)


class SettingsDialog(QDialog):
    """Settings dialog for calculator preferences"""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setModal(True)
        self.resize(275, 120)

        layout = QVBoxLayout()

        self.history_panel_check = QCheckBox("Show history panel")
        self.history_panel_check.setChecked(parent.config.get("show_history_panel", True))
        layout.addWidget(self.history_panel_check)

        # Font selection
        font_layout = QHBoxLayout()
        font_label = QLabel("Display Font:")
        self.font_button = QPushButton("Choose Font...")
        self.font_button.clicked.connect(self.choose_font)
        font_layout.addWidget(font_label)
        font_layout.addWidget(self.font_button)
        font_layout.addStretch()
        layout.addLayout(font_layout)

        layout.addStretch()

        button_box = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok |
            QDialogButtonBox.StandardButton.Cancel
        )
        button_box.accepted.connect(self.accept)
        button_box.rejected.connect(self.reject)
        layout.addWidget(button_box)

        self.setLayout(layout)
        self.selected_font = None

    def choose_font(self):
        """Open font dialog"""
        current_font = self.parent().display.font()
        font, ok = QFontDialog.getFont(current_font, self)
        if ok:
            self.selected_font = font


class HistoryPanel(QFrame):
    """History panel showing previous calculations, newest first"""

    def __init__(self, history, parent=None):
        super().__init__(parent)
        self.history = history
        self.setFrameStyle(QFrame.Shape.StyledPanel | QFrame.Shadow.Sunken)
        self.setMinimumWidth(300)
        self.setMaximumWidth(300)

        layout = QVBoxLayout()
        layout.setContentsMargins(8, 8, 8, 8)

        title = QLabel("History")
        title_font = QFont()
        title_font.setBold(True)
        title.setFont(title_font)
        layout.addWidget(title)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)

        self.history_widget = QWidget()
        self.history_layout = QVBoxLayout()
        self.history_layout.setSpacing(4)
        self.history_layout.addStretch()
        self.history_widget.setLayout(self.history_layout)

        scroll.setWidget(self.history_widget)
        layout.addWidget(scroll)

        self.setLayout(layout)
        self.history_items = []

        self.history.subscribe(self.refresh)
        self.refresh(self.history)

    def refresh(self, history):
        """Rebuild the labels from the shared history"""
        for label in self.history_items:
            self.history_layout.removeWidget(label)
            label.deleteLater()
        self.history_items.clear()

        font = QFont("Consolas", 9)
        # Stretch stays last; lines go above it in newest-first order
        for index, text in enumerate(history):
            label = QLabel(text)
            label.setWordWrap(True)
            label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
            label.setStyleSheet("padding: 4px; background-color: #101010; border-radius: 3px;")
            label.setFont(font)
            self.history_layout.insertWidget(index, label)
            self.history_items.append(label)

    def detach(self):
        self.history.unsubscribe(self.refresh)


class HistoryWindow(QDialog):
    """Stand-alone history window with Copy All / Clear"""

    def __init__(self, history, parent=None):
        super().__init__(parent)
        self.history = history
        self.setWindowTitle("History")
        self.setModal(False)
        self.resize(420, 340)

        layout = QVBoxLayout()

        self.list_widget = QListWidget()
        self.list_widget.setFont(QFont("Consolas", 12))
        self.list_widget.setSelectionMode(QAbstractItemView.SelectionMode.ExtendedSelection)
        self.list_widget.setTextElideMode(Qt.TextElideMode.ElideMiddle)
        layout.addWidget(self.list_widget)

        button_layout = QHBoxLayout()
        button_layout.addStretch()
        self.copy_button = QPushButton("Copy All")
        self.copy_button.setShortcut(QKeySequence("Ctrl+Shift+C"))
        self.copy_button.clicked.connect(self.copy_all)
        button_layout.addWidget(self.copy_button)

        self.clear_button = QPushButton("Clear")
        self.clear_button.clicked.connect(self.history.clear)
        button_layout.addWidget(self.clear_button)
        layout.addLayout(button_layout)

        self.setLayout(layout)

        self.history.subscribe(self.refresh)
        self.refresh(self.history)

    def refresh(self, history):
        self.list_widget.clear()
        self.list_widget.addItems(history.entries)
        has_entries = len(history) > 0
        self.copy_button.setEnabled(has_entries)
        self.clear_button.setEnabled(has_entries)

    def copy_all(self):
        """Copy every history line to the clipboard"""
        QApplication.clipboard().setText(self.history.as_text())

    def closeEvent(self, event):
        self.history.unsubscribe(self.refresh)
        event.accept()


class CalculatorWindow(QMainWindow):
    """Main calculator window"""

    def __init__(self, history=None, config_file=None):
        super().__init__()
        self.history = history if history is not None else History()
        self.config_file = config_file or get_app_path() / "config.json"
        self.config = load_config(self.config_file)

        self.engine = CalculatorEngine(self.history)
        self.history_window = None

        self.init_ui()
        self.load_settings()

    def init_ui(self):
        """Initialize the user interface"""
        self.setWindowTitle("Calculator")

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout()
        main_layout.setSpacing(10)

        # Left side - calculator
        calc_layout = QVBoxLayout()
        calc_layout.setSpacing(8)

        display_frame = QFrame()
        display_frame.setFrameStyle(QFrame.Shape.StyledPanel | QFrame.Shadow.Sunken)
        display_layout = QVBoxLayout()
        display_layout.setContentsMargins(5, 5, 5, 5)

        # Top info row (Base + Pending Op)
        info_layout = QHBoxLayout()

        self.mode_label = QLabel(engine.BASE_DEC)
        mode_font = QFont()
        mode_font.setBold(True)
        mode_font.setPointSize(9)
        self.mode_label.setFont(mode_font)
        self.mode_label.setStyleSheet("color: #0066cc;")
        info_layout.addWidget(self.mode_label)

        info_layout.addStretch()

        self.op_label = QLabel("")
        op_font = QFont("Consolas", 20)
        op_font.setBold(True)
        self.op_label.setFont(op_font)
        self.op_label.setStyleSheet("color: #ffa500;")
        info_layout.addWidget(self.op_label)

        display_layout.addLayout(info_layout)

        # Main display, right-click for BIN / DEC / HEX
        self.display = QLabel("0")
        self.display.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        self.display.setFont(QFont("Consolas", 28))
        self.display.setMinimumHeight(60)
        self.display.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.display.customContextMenuRequested.connect(self.show_base_menu)
        display_layout.addWidget(self.display)

        display_frame.setLayout(display_layout)
        calc_layout.addWidget(display_frame)

        # Button grid
        button_layout = QGridLayout()
        button_layout.setSpacing(0)

        self.buttons = {}
        for row, keys in enumerate(KEY_ROWS):
            for col, key in enumerate(keys):
                btn = QPushButton(key)
                btn.setMinimumSize(64, 56)
                btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
                btn.clicked.connect(lambda checked, k=key: self.press_key(k))
                self.buttons[key] = btn
                button_layout.addWidget(btn, row, col)

        calc_layout.addLayout(button_layout)
        main_layout.addLayout(calc_layout)

        # Right side - history panel
        self.history_panel = HistoryPanel(self.history)
        main_layout.addWidget(self.history_panel)

        central.setLayout(main_layout)

        self.create_menus()

        self.setMinimumSize(360, 460)
        self.update_display()

    def create_menus(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")

        new_window_action = QAction("&New Window", self)
        new_window_action.setShortcut("Ctrl+N")
        new_window_action.triggered.connect(self.open_new_window)
        file_menu.addAction(new_window_action)

        file_menu.addSeparator()

        quit_action = QAction("&Quit", self)
        quit_action.setShortcut("Ctrl+Q")
        quit_action.triggered.connect(lambda: QApplication.closeAllWindows())
        file_menu.addAction(quit_action)

        edit_menu = menubar.addMenu("&Edit")

        copy_action = QAction("&Copy", self)
        copy_action.setShortcut("Ctrl+C")
        copy_action.triggered.connect(self.copy_to_clipboard)
        edit_menu.addAction(copy_action)

        edit_menu.addSeparator()

        settings_action = QAction("&Settings...", self)
        settings_action.triggered.connect(self.show_settings)
        edit_menu.addAction(settings_action)

        history_menu = menubar.addMenu("Hi&story")

        show_history_action = QAction("&Show History", self)
        show_history_action.setShortcut("Ctrl+Shift+H")
        show_history_action.triggered.connect(self.show_history_window)
        history_menu.addAction(show_history_action)

        self.clear_history_action = QAction("&Clear History", self)
        self.clear_history_action.setShortcut("Ctrl+Backspace")
        self.clear_history_action.triggered.connect(self.history.clear)
        history_menu.addAction(self.clear_history_action)
        history_menu.aboutToShow.connect(
            lambda: self.clear_history_action.setEnabled(len(self.history) > 0)
        )

        help_menu = menubar.addMenu("&Help")

        shortcuts_action = QAction("&Keyboard Shortcuts", self)
        shortcuts_action.triggered.connect(self.show_shortcuts)
        help_menu.addAction(shortcuts_action)

    def press_key(self, key):
        """Send a key to the engine and refresh"""
        self.engine.handle_key(key)
        self.update_display()

    def show_base_menu(self, pos):
        menu = QMenu(self)
        for key in (engine.KEY_BIN, engine.KEY_DEC, engine.KEY_HEX):
            action = menu.addAction(key)
            action.triggered.connect(lambda checked, k=key: self.press_key(k))
        menu.exec(self.display.mapToGlobal(pos))

    def copy_to_clipboard(self):
        """Copy the displayed value"""
        QApplication.clipboard().setText(self.engine.display)

    def load_settings(self):
        """Apply loaded settings to the UI"""
        font_str = self.config.get("display_font")
        if font_str:
            font = QFont()
            if font.fromString(font_str):
                self.display.setFont(font)

        self.history_panel.setVisible(bool(self.config.get("show_history_panel", True)))

    def save_settings(self):
        """Save settings to JSON file"""
        self.config["display_font"] = self.display.font().toString()
        self.config["show_history_panel"] = self.history_panel.isVisibleTo(self)
        save_config(self.config_file, self.config)

    def show_settings(self):
        """Show settings dialog"""
        dialog = SettingsDialog(self)
        if dialog.exec() == QDialog.DialogCode.Accepted:
            self.config["show_history_panel"] = dialog.history_panel_check.isChecked()
            self.history_panel.setVisible(self.config["show_history_panel"])

            if dialog.selected_font:
                self.display.setFont(dialog.selected_font)

            self.update_display()

    def show_history_window(self):
        if self.history_window is None or not self.history_window.isVisible():
            self.history_window = HistoryWindow(self.history, self)
        self.history_window.show()
        self.history_window.raise_()
        self.history_window.activateWindow()

    def open_new_window(self):
        """Open another calculator sharing this window's history"""
        window = CalculatorWindow(self.history, self.config_file)
        open_windows.append(window)
        window.show()
        return window

    def show_shortcuts(self):
        """Show keyboard shortcuts help"""
        shortcuts = """
<h3>Keyboard Shortcuts</h3>
<table>
<tr><td><b>0-9 .</b></td><td>Number entry (numpad supported)</td></tr>
<tr><td><b>+, -, *, /</b></td><td>Basic operations</td></tr>
<tr><td><b>^</b></td><td>Power (x<sup>y</sup>)</td></tr>
<tr><td><b>%</b></td><td>Percent</td></tr>
<tr><td><b>R</b></td><td>Square root</td></tr>
<tr><td><b>I</b></td><td>Reciprocal (1/x)</td></tr>
<tr><td><b>B / H / D</b></td><td>Convert to BIN / HEX / DEC</td></tr>
<tr><td><b>Enter, =</b></td><td>Equals</td></tr>
<tr><td><b>Backspace</b></td><td>Delete last digit</td></tr>
<tr><td><b>ESC</b></td><td>All clear</td></tr>
<tr><td><b>Ctrl+Shift+H</b></td><td>Show history</td></tr>
</table>
        """
        msg = QMessageBox(self)
        msg.setWindowTitle("Keyboard Shortcuts")
        msg.setTextFormat(Qt.TextFormat.RichText)
        msg.setText(shortcuts)
        msg.exec()

    def keyPressEvent(self, event: QKeyEvent):
        """Handle keyboard input"""
        key = event.key()
        text = event.text().upper()
        modifiers = event.modifiers()

        if modifiers & Qt.KeyboardModifier.ControlModifier:
            super().keyPressEvent(event)
            return

        if text.isdigit() and len(text) == 1:
            self.press_key(text)
        elif key in [Qt.Key.Key_Return, Qt.Key.Key_Enter]:
            self.press_key(engine.KEY_EQUALS)
        elif key in [Qt.Key.Key_Backspace, Qt.Key.Key_Delete]:
            self.press_key(engine.KEY_DELETE)
        elif key == Qt.Key.Key_Escape:
            self.press_key(engine.KEY_CLEAR)
        elif text in KEY_SHORTCUTS:
            self.press_key(KEY_SHORTCUTS[text])
        else:
            super().keyPressEvent(event)

    def update_display(self):
        """Render the engine state"""
        state = self.engine
        self.display.setText(state.display)
        self.mode_label.setText(state.base)
        self.op_label.setText(state.pending_symbol)

        decimal_mode = state.base == engine.BASE_DEC
        for key, btn in self.buttons.items():
            btn.setEnabled(decimal_mode or key == engine.KEY_CLEAR)
            btn.setStyleSheet(self.button_style(key))

    def button_style(self, key):
        if key == engine.KEY_CLEAR:
            color = KEY_COLORS["clear_active" if self.engine.operation_performed else "clear"]
        elif key in engine.DIGIT_KEYS or key == engine.KEY_POINT:
            color = KEY_COLORS["digit"]
        else:
            color = KEY_COLORS["operator"]
        return f"""
            QPushButton {{
                border: 1px solid #a0a0a0;
                font-size: 16pt;
                background-color: {color};
            }}
        """

    def closeEvent(self, event):
        """Handle window close"""
        self.save_settings()
        self.history_panel.detach()
        if self.history_window is not None:
            self.history_window.close()
        if self in open_windows:
            open_windows.remove(self)
        event.accept()


def main():
    app = QApplication(sys.argv)
    if sys.platform == "win32":
        ctypes.windll.shell32.SetCurrentProcessExplicitAppUserModelID(
            "deskcalc.deskcalc"
        )
    qdarktheme.setup_theme()

    config_file = get_app_path() / "config.json"
    setup_logging(load_config(config_file).get("log_level"))

    calculator = CalculatorWindow(History(), config_file)
    open_windows.append(calculator)
    calculator.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
