from typing import Any
from collections.abc import Callable
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QProgressBar,
    QVBoxLayout,
    QWidget,
)
from tdash.core.timer_state import SeedRecord
from tdash.ui.ui_blueprint import UIBlueprint
from tdash.util import format_time, format_limit


# Card frame that keeps any overlay children stretched over the whole card.
class TimerCard(QFrame):

    def __init__(self, timer_id, parent=None):
        super().__init__(parent)
        self.timer_id = timer_id
        self.setObjectName("timerCard")

    def resizeEvent(self, event):
        for child in self.findChildren(QWidget, "expiredOverlay", Qt.FindChildOption.FindDirectChildrenOnly):
            child.setGeometry(self.rect())
        super().resizeEvent(event)


# Purely organizational class to build timer cards. Each builder returns a (container, widget_dict) tuple. The
# widget_dict maps logical names to sub-widgets for later updates.
class CardFactory:
    @staticmethod
    # Given a UIBlueprint object and a seed, this method builds a single timer card. Controls are left empty; the view
    # binder fills them from the timer's run state.
    def timer(blueprint: UIBlueprint,
              seed: SeedRecord,
              on_context_menu: Callable[..., Any] | None = None):
        card = TimerCard(seed.timer_id)
        card.setFixedWidth(blueprint.card_w)
        card.setProperty("status", "gray")
        body = QVBoxLayout(card)
        body.setContentsMargins(blueprint.padding, blueprint.padding, blueprint.padding, blueprint.padding)
        body.setSpacing(blueprint.btn_spacing)

        # Header: name + category
        name_lbl = QLabel(seed.name)
        name_lbl.setFont(blueprint.name_font)
        body.addWidget(name_lbl)
        category_lbl = QLabel(seed.category or "")
        category_lbl.setFont(blueprint.label_font)
        category_lbl.setVisible(bool(seed.category))
        body.addWidget(category_lbl)

        # Stat rows: elapsed, remaining, daily limit
        stats = QWidget()
        stats.setObjectName("statRows")
        stats.setStyleSheet("#statRows { background: transparent; }")
        stats_lay = QGridLayout(stats)
        stats_lay.setContentsMargins(0, 0, 0, 0)
        stats_lay.setHorizontalSpacing(blueprint.padding)

        elapsed_lbl = QLabel(format_time(seed.elapsed))
        remaining_lbl = QLabel(format_time(seed.remaining))
        limit_lbl = QLabel(format_limit(seed.limit_seconds) if seed.limit_seconds is not None else "")
        for row, (caption, value_lbl) in enumerate((("Elapsed", elapsed_lbl),
                                                    ("Remaining", remaining_lbl),
                                                    ("Daily limit", limit_lbl))):
            caption_lbl = QLabel(caption)
            caption_lbl.setFont(blueprint.label_font)
            value_lbl.setFont(blueprint.time_font if row < 2 else blueprint.label_font)
            value_lbl.setAlignment(Qt.AlignRight | Qt.AlignVCenter)
            value_lbl.setMinimumWidth(blueprint.min_time_w if row < 2 else 0)
            stats_lay.addWidget(caption_lbl, row, 0)
            stats_lay.addWidget(value_lbl, row, 1)
        remaining_lbl.setProperty("expired", False)
        body.addWidget(stats)

        # Usage bar
        progress = QProgressBar()
        progress.setRange(0, 100)
        progress.setTextVisible(False)
        progress.setFixedHeight(max(4, blueprint.padding))
        body.addWidget(progress)

        # Primary control slot
        controls = QWidget()
        controls.setObjectName("timerControls")
        controls.setStyleSheet("#timerControls { background: transparent; }")
        controls_lay = QHBoxLayout(controls)
        controls_lay.setContentsMargins(0, 0, 0, 0)
        controls_lay.setSpacing(blueprint.btn_spacing)
        body.addWidget(controls)

        if on_context_menu is not None:
            card.setContextMenuPolicy(Qt.CustomContextMenu)
            card.customContextMenuRequested.connect(
                lambda pos, tid=seed.timer_id, w=card: on_context_menu(tid, w.mapToGlobal(pos))
            )

        widget_dict = {
            "container": card, "body": body,
            "name": name_lbl, "category": category_lbl,
            "elapsed": elapsed_lbl, "remaining": remaining_lbl, "limit": limit_lbl,
            "progress": progress,
            "controls": controls, "controls_layout": controls_lay,
        }
        return card, widget_dict
