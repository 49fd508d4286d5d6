from dataclasses import dataclass
from PySide6.QtGui import QFont, QFontMetrics
from tdash.ui.theme import SIZES

# A unified UI Blueprint dataclass to share across all card builders.
@dataclass
class UIBlueprint:
    size: dict           # resolved size dict (SIZES[name])
    font_family: str
    padding: int
    btn_spacing: int
    card_w: int
    min_time_w: int
    name_font: QFont
    time_font: QFont
    label_font: QFont
    action_font: QFont

    # Builds the context from current settings.
    @staticmethod
    def compute(size_name, font_family):
        size = SIZES.get(size_name, SIZES["Regular"])
        padding = size["padding"]

        name_font = QFont(font_family, size["label"])
        name_font.setBold(True)
        time_font = QFont(font_family, size["time"])
        label_font = QFont(font_family, size["action"])
        action_font = QFont(font_family, size["action"])

        # Widest thing a time label ever shows, so cards don't jitter as digits change
        fm_time = QFontMetrics(time_font)
        min_time_w = max(fm_time.horizontalAdvance(s) for s in ("00:00:00 ", "-00:00 OVER ", "EXPIRED "))

        return UIBlueprint(
            size=size, font_family=font_family,
            padding=padding, btn_spacing=max(1, padding // 2),
            card_w=max(size["card_w"], min_time_w + 2 * padding),
            min_time_w=min_time_w,
            name_font=name_font, time_font=time_font,
            label_font=label_font, action_font=action_font,
        )
