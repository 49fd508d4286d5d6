import sys
from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QApplication,
    QGridLayout,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMenu,
    QVBoxLayout,
    QWidget,
)
from tdash.common.logger import log
from tdash.core import config
from tdash.core.clock import LocalClock
from tdash.core.config import DashboardConfig
from tdash.core.engine import Command, ReconciliationEngine
from tdash.core.timer_state import SeedRecord, TimerSnapshot
from tdash.net.status_client import StatusClient, NETWORK_ERROR_MESSAGE
from tdash.ui.theme import build_stylesheet
from tdash.ui.ui_blueprint import UIBlueprint
from tdash.ui.view_binder import ViewBinder

_COLUMNS = 3


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

# Main window of the timer dashboard. Owns one engine, one binder and one clock for its lifetime; `init()` loads the
# timers from the server and `teardown()` (or closing the window) stops everything.
class DashboardWindow(QMainWindow):

    def __init__(self, cfg: DashboardConfig, client=None):
        super().__init__()
        self.setWindowTitle("Timers")
        self.config = cfg
        self._alive = True
        self._seeded = False
        self._failed = False

        self.engine = ReconciliationEngine()
        self.binder = ViewBinder(self.engine, UIBlueprint.compute(cfg.size, cfg.font),
                                 on_context_menu=self._on_card_context_menu)
        self.binder.bind_commands({
            Command.START: self._on_start,
            Command.PAUSE: self._on_pause,
        })
        self.clock = LocalClock(self.engine,
                                on_changed=self.binder.render_tick,
                                on_expired=self._on_local_expiry)
        self.client = client or StatusClient(cfg, parent=self)

        # -- Build UI skeleton --
        central = QWidget()
        self.setCentralWidget(central)
        self._main_lay = QVBoxLayout(central)
        self._grid_widget = QWidget()
        self._grid = QGridLayout(self._grid_widget)
        self._grid.setContentsMargins(0, 0, 0, 0)
        self._grid.setAlignment(Qt.AlignTop | Qt.AlignLeft)
        self._main_lay.addWidget(self._grid_widget)
        self.setStyleSheet(build_stylesheet())
        self.statusBar()

        # -- Tick (local prediction) and poll (server truth) timers --
        self._tick_timer = QTimer(self)
        self._tick_timer.timeout.connect(self._tick)
        self._poll_timer = QTimer(self)
        self._poll_timer.timeout.connect(self.refresh_status)

    @property
    def alive(self):
        return self._alive

    @property
    def failed(self):
        return self._failed

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    def init(self):
        """Fetch the initial timer set. Failure here replaces the whole view with an error panel."""
        self._set_placeholder("Loading timers...")
        self.client.fetch_status(self._on_seed_loaded)

    def _on_seed_loaded(self, result):
        if not self._alive:
            log.debug("Initial status arrived after teardown, ignoring")
            return
        timers = result.get("timers")
        if not isinstance(timers, list):
            message = result.get("message") or NETWORK_ERROR_MESSAGE
            log.error(f"Initial timer load failed: {message}")
            self._show_error(message)
            return

        seeds = []
        for payload in timers:
            if not isinstance(payload, dict) or payload.get("id") is None:
                log.warning(f"Skipping seed entry without an id: {payload!r}")
                continue
            seeds.append(SeedRecord.from_payload(payload))

        self.engine.seed(seeds)
        self._clear_grid()
        if not seeds:
            self._set_placeholder("No timers yet.")
        for idx, card in enumerate(self.binder.build_cards(seeds)):
            self._grid.addWidget(card, idx // _COLUMNS, idx % _COLUMNS)
        self._seeded = True
        QTimer.singleShot(0, self.adjustSize)
        self._start_polling()

    def _start_polling(self):
        self._tick_timer.start(self.config.tick_interval_ms)
        self._poll_timer.start(self.config.update_interval_ms)
        log.info(f"Polling every {self.config.update_interval_ms}ms, ticking every {self.config.tick_interval_ms}ms")

    def teardown(self):
        if not self._alive:
            return
        self._alive = False
        self._tick_timer.stop()
        self._poll_timer.stop()
        self.binder.forget()
        self.engine.clear()
        log.info("Dashboard torn down")

    def closeEvent(self, event):
        self.teardown()
        event.accept()

    # ------------------------------------------------------------------ #
    #  Tick and poll                                                       #
    # ------------------------------------------------------------------ #

    def _tick(self):
        if self._alive:
            self.clock.tick()

    def _on_local_expiry(self, timer_id):
        self.binder.update_controls(timer_id)
        self.binder.show_expired_overlay(timer_id)

    def refresh_status(self, then=None):
        """Ask the server for the truth. ``then()`` runs once the reply has been handled, success or not."""
        if not self._alive:
            return
        self.client.fetch_status(lambda result: self._on_status(result, then))

    def _on_status(self, result, then=None):
        if not self._alive:
            log.debug("Status arrived after teardown, ignoring")
            return
        try:
            timers = result.get("timers")
            if not isinstance(timers, list):
                message = result.get("message") or NETWORK_ERROR_MESSAGE
                log.warning(f"Status refresh failed, keeping local predictions: {message}")
                self.notify(f"Status refresh failed: {message}", error=True)
                return

            snapshots = [s for s in (TimerSnapshot.from_payload(p) for p in timers) if s is not None]
            for timer_id in self.engine.merge(snapshots):
                self.binder.render(timer_id)
        finally:
            if then is not None:
                then()

    # ------------------------------------------------------------------ #
    #  Commands                                                            #
    # ------------------------------------------------------------------ #

    def _on_start(self, timer_id):
        self._send(Command.START, timer_id)

    def _on_pause(self, timer_id):
        self._send(Command.PAUSE, timer_id)

    def _on_stop(self, timer_id):
        self._send(Command.STOP, timer_id)

    def _send(self, command, timer_id):
        self.binder.set_busy(timer_id, True)
        self.client.send_command(command, timer_id,
                                 lambda result: self._on_command_done(command, timer_id, result))

    def _on_command_done(self, command, timer_id, result):
        if not self._alive:
            return
        ok, text = self.engine.command_notice(command, result)
        self.notify(text, error=not ok)
        if ok:
            # Keep the control disabled until the follow-up resync has landed
            self.refresh_status(then=lambda: self.binder.set_busy(timer_id, False))
        else:
            self.binder.set_busy(timer_id, False)

    def _grant_bonus(self, timer_id):
        minutes, ok = QInputDialog.getInt(self, "Bonus Time", "Minutes to add:", 15, 1, 24 * 60)
        if ok:
            self.client.grant_bonus(timer_id, minutes, lambda result: self._on_bonus_done(result))

    def _on_bonus_done(self, result):
        if not self._alive:
            return
        if result.get("success"):
            self.notify(result.get("message") or "Bonus time granted")
            self.refresh_status()
        else:
            self.notify(result.get("message") or "Failed to grant bonus time", error=True)

    def _on_card_context_menu(self, timer_id, global_pos):
        state = self.engine.get(timer_id)
        if state is None:
            return
        menu = QMenu(self)
        stop_action = menu.addAction("Stop timer")
        stop_action.setEnabled(state.is_running and not self.binder.is_busy(timer_id))
        bonus_action = menu.addAction("Grant bonus time...")
        menu.addSeparator()
        refresh_action = menu.addAction("Refresh now")

        chosen = menu.exec(global_pos)
        if chosen == stop_action:
            self._on_stop(timer_id)
        elif chosen == bonus_action:
            self._grant_bonus(timer_id)
        elif chosen == refresh_action:
            self.refresh_status()

    # ------------------------------------------------------------------ #
    #  Display helpers                                                     #
    # ------------------------------------------------------------------ #

    def notify(self, message, error=False):
        if error:
            log.warning(f"Notice: {message}")
        else:
            log.info(f"Notice: {message}")
        self.statusBar().showMessage(message, self.config.notice_ms)

    def _clear_grid(self):
        while self._grid.count():
            item = self._grid.takeAt(0)
            w = item.widget()
            if w:
                w.hide()
                w.deleteLater()

    def _set_placeholder(self, text, object_name="placeholder"):
        self._clear_grid()
        lbl = QLabel(text)
        lbl.setObjectName(object_name)
        lbl.setFont(QFont(self.config.font, 13))
        lbl.setAlignment(Qt.AlignCenter)
        self._grid.addWidget(lbl, 0, 0)
        return lbl

    def _show_error(self, message):
        self._failed = True
        self._set_placeholder(f"Unable to load timers: {message}", object_name="errorPanel")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    app = QApplication(sys.argv)
    log.info("=== INITIALIZED NEW SESSION ===")
    window = DashboardWindow(config.load_config())
    window.init()
    window.show()
    sys.exit(app.exec())
