"""Theme: status colours, size presets and the dashboard stylesheet."""

THEME = {
    "bg": "#f5f5f7",
    "card_bg": "#ffffff",
    "card_border": "#d2d2d7",
    "text": "#1d1d1f",
    "muted_text": "#6e6e73",
    "running_text": "#0a7d32",
    "button_bg": "#e8e8ed",
    "button_text": "#1d1d1f",
    "button_active": "#d2d2d7",
    "overlay_bg": "rgba(20, 20, 20, 0.78)",
    "overlay_text": "#ffffff",
    "expired_text": "#c0392b",
    "error_text": "#c0392b",
}

# Progress bar / card accent per usage colour
STATUS_COLORS = {
    "green": "#2ecc71",
    "yellow": "#f1c40f",
    "red": "#e74c3c",
    "gray": "#95a5a6",
}

SIZES = {
    "Small": {"label": 11, "time": 14, "action": 9, "padding": 6, "card_w": 220},
    "Regular": {"label": 13, "time": 18, "action": 10, "padding": 8, "card_w": 260},
    "Large": {"label": 16, "time": 24, "action": 12, "padding": 10, "card_w": 320},
}


def status_hex(color_name):
    return STATUS_COLORS.get(color_name, STATUS_COLORS["gray"])


def build_stylesheet():
    """Build the window-wide Qt stylesheet."""
    t = THEME
    return (
        f"QMainWindow, QWidget {{ background-color: {t['bg']}; }}"
        f"QLabel {{ color: {t['text']}; background: transparent; }}"
        f"QPushButton {{"
        f"  color: {t['button_text']};"
        f"  background-color: {t['button_bg']};"
        f"  border: 1px solid rgba(128,128,128,0.4);"
        f"  padding: 4px 10px;"
        f"}}"
        f"QPushButton:hover, QPushButton:pressed {{"
        f"  background-color: {t['button_active']};"
        f"}}"
        f"QPushButton:disabled {{ color: {t['muted_text']}; }}"
        f"#timerCard {{"
        f"  background-color: {t['card_bg']};"
        f"  border: 1px solid {t['card_border']};"
        f"  border-radius: 6px;"
        f"}}"
        f"#expiredOverlay {{"
        f"  background-color: {t['overlay_bg']};"
        f"  border-radius: 6px;"
        f"}}"
        f"#expiredOverlay QLabel {{ color: {t['overlay_text']}; }}"
        f"QLabel[expired=\"true\"] {{ color: {t['expired_text']}; font-weight: bold; }}"
        f"#runningIndicator {{ color: {t['running_text']}; font-weight: bold; }}"
        f"#errorPanel {{ color: {t['error_text']}; }}"
        + "".join(f"#timerCard[status=\"{name}\"] {{ border-left: 4px solid {hex_}; }}"
                  for name, hex_ in STATUS_COLORS.items())
    )


def progress_stylesheet(color_name):
    return (
        f"QProgressBar {{ border: none; background-color: {THEME['button_bg']}; border-radius: 3px; }}"
        f"QProgressBar::chunk {{ background-color: {status_hex(color_name)}; border-radius: 3px; }}"
    )


__all__ = ["THEME", "STATUS_COLORS", "SIZES", "status_hex", "build_stylesheet", "progress_stylesheet"]
