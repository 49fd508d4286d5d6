"""Projects engine state onto timer cards and routes button presses back out.

Every card shows at most one primary control, picked from the run state:

    IDLE    -> Start   (never with nothing left, that state reads as EXPIRED)
    RUNNING -> Pause
    PAUSED  -> Resume  (sends PAUSE; the server toggles)
    EXPIRED -> nothing, the expired overlay covers the card instead

Buttons carry a ``Command`` and a timer id; presses are looked up in a command
table supplied by the window, so nothing here knows about the network.

Cards can disappear underneath us (teardown while a reply is in flight), so
every write goes through ``_widget`` which checks the map and that the Qt object
still exists. Missing targets are skipped quietly.
"""

from shiboken6 import isValid
from PySide6.QtCore import Qt
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QLabel, QPushButton, QVBoxLayout, QWidget
from tdash.common.logger import log
from tdash.core.engine import Command, ReconciliationEngine
from tdash.core.timer_state import RunState, SeedRecord
from tdash.ui.card_factory import CardFactory
from tdash.ui.theme import progress_stylesheet
from tdash.ui.ui_blueprint import UIBlueprint
from tdash.util import format_time, format_limit

# (text, command) per run state; EXPIRED has no primary control.
PRIMARY_CONTROLS = {
    RunState.IDLE: ("▶ Start", Command.START),
    RunState.RUNNING: ("⏸ Pause", Command.PAUSE),
    RunState.PAUSED: ("▶ Resume", Command.PAUSE),
}


# Takes a widget out of view and out of every lookup right away; the object itself goes on the next event loop pass,
# which keeps a button alive while its own clicked signal is still being handled.
def _retire(widget):
    widget.hide()
    widget.setObjectName("")
    widget.deleteLater()


def _repolish(widget):
    style = widget.style()
    style.unpolish(widget)
    style.polish(widget)


class ViewBinder:

    def __init__(self, engine: ReconciliationEngine, blueprint: UIBlueprint, on_context_menu=None):
        self.engine = engine
        self.blueprint = blueprint
        self._on_context_menu = on_context_menu
        self._widgets: dict[str, dict] = {}
        self._commands = {}
        self._busy = set()

    # ------------------------------------------------------------------ #
    #  Setup                                                               #
    # ------------------------------------------------------------------ #

    def bind_commands(self, table):
        """``table`` maps a Command to ``handler(timer_id)``."""
        self._commands = dict(table)

    def build_cards(self, seeds: list[SeedRecord]):
        cards = []
        for seed in seeds:
            if seed.timer_id in self._widgets:
                continue
            card, widget_dict = CardFactory.timer(self.blueprint, seed, on_context_menu=self._on_context_menu)
            self._widgets[seed.timer_id] = widget_dict
            cards.append(card)
            self.render(seed.timer_id)
        return cards

    def has_card(self, timer_id):
        return self.card(timer_id) is not None

    def forget(self):
        self._widgets.clear()
        self._busy.clear()

    # ------------------------------------------------------------------ #
    #  Lookups                                                             #
    # ------------------------------------------------------------------ #

    def card(self, timer_id):
        return self._widget(timer_id, "container")

    def _widget(self, timer_id, key):
        wd = self._widgets.get(str(timer_id))
        if wd is None:
            return None
        widget = wd.get(key)
        if widget is None or not isValid(widget):
            return None
        return widget

    def primary_button(self, timer_id):
        controls = self._widget(timer_id, "controls")
        if controls is None:
            return None
        buttons = controls.findChildren(QPushButton, "primaryControl")
        return buttons[0] if buttons else None

    def running_indicator(self, timer_id):
        card = self.card(timer_id)
        return card.findChild(QLabel, "runningIndicator") if card is not None else None

    def expired_overlay(self, timer_id):
        card = self.card(timer_id)
        if card is None:
            return None
        return card.findChild(QWidget, "expiredOverlay", Qt.FindChildOption.FindDirectChildrenOnly)

    # ------------------------------------------------------------------ #
    #  Rendering                                                           #
    # ------------------------------------------------------------------ #

    def render(self, timer_id):
        """Full projection after a seed or a merge: every field comes from the fresh record."""
        state = self.engine.get(timer_id)
        card = self.card(timer_id)
        if state is None or card is None:
            log.debug(f"Nothing to render for timer '{timer_id}'")
            return False

        self._render_times(timer_id, state)
        limit_lbl = self._widget(timer_id, "limit")
        if limit_lbl is not None and state.limit_seconds is not None:
            limit_lbl.setText(format_limit(state.limit_seconds))

        if card.property("status") != state.status_color:
            card.setProperty("status", state.status_color)
            _repolish(card)
        self.update_controls(timer_id)
        if state.is_expired or state.remaining_seconds <= 0:
            self.show_expired_overlay(timer_id)
        else:
            self.hide_expired_overlay(timer_id)
        return True

    def render_tick(self, timer_id):
        """Per-second projection: times and progress only."""
        state = self.engine.get(timer_id)
        if state is None or self.card(timer_id) is None:
            return False
        self._render_times(timer_id, state)
        return True

    def _render_times(self, timer_id, state):
        elapsed_lbl = self._widget(timer_id, "elapsed")
        if elapsed_lbl is not None:
            elapsed_lbl.setText(format_time(state.elapsed_seconds))

        remaining_lbl = self._widget(timer_id, "remaining")
        if remaining_lbl is not None:
            remaining_lbl.setText(format_time(state.remaining_seconds))
            expired = state.remaining_seconds <= 0
            if remaining_lbl.property("expired") != expired:
                remaining_lbl.setProperty("expired", expired)
                _repolish(remaining_lbl)

        progress = self._widget(timer_id, "progress")
        if progress is not None:
            progress.setValue(int(state.progress_percent))
            progress.setStyleSheet(progress_stylesheet(state.status_color))

    def update_controls(self, timer_id):
        state = self.engine.get(timer_id)
        controls_lay = self._widget(timer_id, "controls_layout")
        controls = self._widget(timer_id, "controls")
        if state is None or controls_lay is None or controls is None:
            return

        wanted = PRIMARY_CONTROLS.get(state.run_state)
        current = self.primary_button(timer_id)
        if current is not None and (wanted is None
                                    or current.text() != wanted[0]
                                    or current.property("command") != wanted[1].value):
            controls_lay.removeWidget(current)
            _retire(current)
            current = None

        if wanted is not None and current is None:
            text, command = wanted
            current = QPushButton(text)
            current.setObjectName("primaryControl")
            current.setFont(self.blueprint.action_font)
            current.setProperty("command", command.value)
            current.setProperty("timer_id", state.timer_id)
            current.clicked.connect(lambda _=False, c=command, tid=state.timer_id: self._dispatch(c, tid))
            controls_lay.addWidget(current)

        if current is not None:
            current.setEnabled(state.timer_id not in self._busy)

        self._set_running_indicator(timer_id, state.is_running)

    def _set_running_indicator(self, timer_id, running):
        indicator = self.running_indicator(timer_id)
        if running and indicator is None:
            body = self._widget(timer_id, "body")
            controls = self._widget(timer_id, "controls")
            if body is None or controls is None:
                return
            indicator = QLabel("● RUNNING")
            indicator.setObjectName("runningIndicator")
            indicator.setFont(self.blueprint.label_font)
            body.insertWidget(body.indexOf(controls) + 1, indicator)
        elif not running and indicator is not None:
            _retire(indicator)

    def show_expired_overlay(self, timer_id):
        """Cover the card with the time's-up overlay. Safe to call repeatedly."""
        card = self.card(timer_id)
        if card is None or self.expired_overlay(timer_id) is not None:
            return False

        overlay = QWidget(card)
        overlay.setObjectName("expiredOverlay")
        overlay.setAttribute(Qt.WA_StyledBackground, True)
        lay = QVBoxLayout(overlay)
        lay.setAlignment(Qt.AlignCenter)
        for text, bold in (("⏰", False), ("Time's Up!", True), ("Ask an admin for more time", False)):
            lbl = QLabel(text)
            font = self.blueprint.time_font if bold else self.blueprint.label_font
            if bold:
                font = QFont(font)
                font.setBold(True)
            lbl.setFont(font)
            lbl.setAlignment(Qt.AlignCenter)
            lay.addWidget(lbl)
        overlay.setGeometry(card.rect())
        overlay.show()
        overlay.raise_()
        log.info(f"Timer '{timer_id}' expired overlay shown")
        return True

    def hide_expired_overlay(self, timer_id):
        overlay = self.expired_overlay(timer_id)
        if overlay is None:
            return False
        _retire(overlay)
        log.info(f"Timer '{timer_id}' expired overlay removed")
        return True

    # ------------------------------------------------------------------ #
    #  Commands                                                            #
    # ------------------------------------------------------------------ #

    def set_busy(self, timer_id, busy):
        """Disable (or re-enable) a card's control while its command is in flight."""
        timer_id = str(timer_id)
        if busy:
            self._busy.add(timer_id)
        else:
            self._busy.discard(timer_id)
        self.update_controls(timer_id)

    def is_busy(self, timer_id):
        return str(timer_id) in self._busy

    def _dispatch(self, command, timer_id):
        handler = self._commands.get(command)
        if handler is None:
            log.warning(f"No handler bound for {command.name}")
            return
        if self.is_busy(timer_id):
            log.debug(f"Ignoring {command.name} for '{timer_id}', a command is already in flight")
            return
        handler(timer_id)
