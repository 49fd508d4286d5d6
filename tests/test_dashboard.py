"""Tests for the dashboard window and view binder, against an in-memory fake server.

Covers: tdash.ui.app, tdash.ui.view_binder, tdash.ui.card_factory
"""

import copy
import os
import tempfile
import unittest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("TDASH_DATA_DIR", tempfile.mkdtemp(prefix="tdash-test-"))

from PySide6.QtWidgets import QApplication, QLabel, QPushButton, QWidget

_app = None


def setUpModule():
    global _app
    _app = QApplication.instance() or QApplication([])


def _timer(timer_id, elapsed=0, remaining=60, running=False, paused=False, limit=None, name=None):
    return {
        "id": timer_id,
        "name": name or f"Timer {timer_id}",
        "category": "Games",
        "elapsed_seconds": elapsed,
        "remaining_seconds": remaining,
        "is_running": running,
        "is_paused": paused,
        "limit_seconds": limit if limit is not None else elapsed + max(0, remaining),
        "status_color": "green",
    }


# Stand-in for StatusClient. Holds server-side timer records and applies start/pause the way the server does. With
# `deferred` set, callbacks queue up until `deliver()` instead of firing immediately.
class FakeStatusClient:

    def __init__(self, timers=None, fail_status=False):
        self.timers = {str(t["id"]): t for t in (timers or [])}
        self.fail_status = fail_status
        self.fail_commands = False
        self.deferred = False
        self.pending = []
        self.calls = []

    def fetch_status(self, callback):
        self.calls.append(("status", None))
        if self.fail_status:
            result = {"success": False, "message": "Network error"}
        else:
            result = {"timers": copy.deepcopy(list(self.timers.values()))}
        self._answer(callback, result)

    def send_command(self, command, timer_id, callback):
        self.calls.append((command.value, timer_id))
        if self.fail_commands:
            self._answer(callback, {"success": False, "message": "Network error"})
            return
        timer = self.timers[str(timer_id)]
        if command.value == "start":
            timer["is_running"] = True
            result = {"success": 1, "message": "Timer started"}
        elif command.value == "pause":
            timer["is_paused"] = not timer["is_paused"]
            timer["is_running"] = not timer["is_paused"]
            result = {"success": 1, "paused": int(timer["is_paused"]), "message": "Timer paused"}
        else:
            timer["is_running"] = False
            result = {"success": 1, "message": "Timer stopped"}
        self._answer(callback, result)

    def grant_bonus(self, timer_id, minutes, callback):
        timer = self.timers[str(timer_id)]
        timer["remaining_seconds"] += minutes * 60
        timer["limit_seconds"] += minutes * 60
        self._answer(callback, {"success": 1, "message": f"{minutes} minutes added"})

    def _answer(self, callback, result):
        if self.deferred:
            self.pending.append((callback, result))
        else:
            callback(result)

    def deliver(self):
        pending, self.pending = self.pending, []
        for callback, result in pending:
            callback(result)


class DashboardTestCase(unittest.TestCase):

    def make_window(self, timers=None, fail_status=False, **options):
        from tdash.core.config import DashboardConfig
        from tdash.ui.app import DashboardWindow
        self.client = FakeStatusClient(timers, fail_status=fail_status)
        window = DashboardWindow(DashboardConfig().merged(options), client=self.client)
        self.addCleanup(window.deleteLater)
        self.addCleanup(window.teardown)
        window.init()
        return window

    @staticmethod
    def text_of(window, timer_id, key):
        return window.binder._widget(timer_id, key).text()

    @staticmethod
    def primary_buttons(window, timer_id):
        controls = window.binder._widget(timer_id, "controls")
        return controls.findChildren(QPushButton, "primaryControl")

    @staticmethod
    def overlays(window, timer_id):
        return window.binder.card(timer_id).findChildren(QWidget, "expiredOverlay")


class TestSeeding(DashboardTestCase):

    def test_cards_built_from_initial_status(self):
        window = self.make_window([_timer(1, elapsed=30, remaining=3631), _timer(2)])
        self.assertFalse(window.failed)
        self.assertEqual(sorted(window.engine.ids()), ["1", "2"])
        self.assertTrue(window.binder.has_card("1"))
        self.assertEqual(self.text_of(window, "1", "elapsed"), "0:00:30")
        self.assertEqual(self.text_of(window, "1", "remaining"), "1:00:31")
        self.assertEqual(self.text_of(window, "1", "name"), "Timer 1")

    def test_one_primary_control_per_run_state(self):
        window = self.make_window([
            _timer("idle"),
            _timer("run", running=True),
            _timer("paused", paused=True),
            _timer("done", elapsed=60, remaining=0),
        ])
        self.assertEqual(window.binder.primary_button("idle").text(), "▶ Start")
        self.assertEqual(window.binder.primary_button("run").text(), "⏸ Pause")
        self.assertEqual(window.binder.primary_button("paused").text(), "▶ Resume")
        self.assertIsNone(window.binder.primary_button("done"))
        for tid in ("idle", "run", "paused"):
            self.assertEqual(len(self.primary_buttons(window, tid)), 1)

    def test_running_indicator_only_on_running(self):
        window = self.make_window([_timer("a", running=True), _timer("b")])
        self.assertIsNotNone(window.binder.running_indicator("a"))
        self.assertIsNone(window.binder.running_indicator("b"))

    def test_expired_seed_has_overlay(self):
        window = self.make_window([_timer("done", elapsed=60, remaining=0)])
        self.assertEqual(len(self.overlays(window, "done")), 1)
        self.assertEqual(self.text_of(window, "done", "remaining"), "EXPIRED")

    def test_seed_failure_shows_error_panel(self):
        window = self.make_window(fail_status=True)
        self.assertTrue(window.failed)
        self.assertEqual(len(window.engine), 0)
        panel = window.findChild(QLabel, "errorPanel")
        self.assertIsNotNone(panel)
        self.assertIn("Network error", panel.text())
        self.assertFalse(window._tick_timer.isActive())
        self.assertFalse(window._poll_timer.isActive())

    def test_empty_timer_list(self):
        window = self.make_window([])
        self.assertFalse(window.failed)
        self.assertIsNotNone(window.findChild(QLabel, "placeholder"))
        self.assertTrue(window._poll_timer.isActive())

    def test_polling_uses_configured_interval(self):
        window = self.make_window([_timer(1)], update_interval_ms=2500)
        self.assertEqual(window._poll_timer.interval(), 2500)
        self.assertEqual(window._tick_timer.interval(), 1000)


class TestTickAndPoll(DashboardTestCase):

    def test_tick_updates_running_card(self):
        window = self.make_window([_timer(1, elapsed=10, remaining=50, running=True), _timer(2)])
        window._tick()
        self.assertEqual(self.text_of(window, "1", "elapsed"), "0:00:11")
        self.assertEqual(self.text_of(window, "1", "remaining"), "0:00:49")
        self.assertEqual(self.text_of(window, "2", "remaining"), "0:01:00")

    def test_sixty_ticks_expire_with_single_overlay(self):
        window = self.make_window([_timer(1, elapsed=0, remaining=60, running=True)])
        for _ in range(60):
            window._tick()
        self.assertEqual(self.text_of(window, "1", "remaining"), "EXPIRED")
        self.assertEqual(len(self.overlays(window, "1")), 1)
        self.assertIsNone(window.binder.primary_button("1"))
        self.assertIsNone(window.binder.running_indicator("1"))

        for _ in range(10):
            window._tick()
        self.assertEqual(len(self.overlays(window, "1")), 1)
        self.assertEqual(self.text_of(window, "1", "elapsed"), "0:01:00")

    def test_poll_overwrites_local_prediction(self):
        window = self.make_window([_timer(1, elapsed=0, remaining=60, running=True, limit=60)])
        for _ in range(20):
            window._tick()
        self.assertEqual(window.engine.get("1").remaining_seconds, 40)

        self.client.timers["1"].update(elapsed_seconds=18, remaining_seconds=52, limit_seconds=70)
        window.refresh_status()
        self.assertEqual(window.engine.get("1").remaining_seconds, 52)
        self.assertEqual(self.text_of(window, "1", "remaining"), "0:00:52")
        self.assertEqual(self.text_of(window, "1", "limit"), "1 minutes")

    def test_tick_between_request_and_response(self):
        window = self.make_window([_timer(1, elapsed=0, remaining=60, running=True)])
        self.client.deferred = True
        self.client.timers["1"].update(elapsed_seconds=5, remaining_seconds=55)
        window.refresh_status()
        for _ in range(3):
            window._tick()
        self.client.deliver()
        self.assertEqual(window.engine.get("1").remaining_seconds, 55)

    def test_absent_timer_keeps_local_state(self):
        window = self.make_window([_timer(1, running=True), _timer(2, running=True)])
        window._tick()
        del self.client.timers["2"]
        self.client.timers["1"]["remaining_seconds"] = 30
        window.refresh_status()
        self.assertEqual(window.engine.get("2").remaining_seconds, 59)
        self.assertEqual(self.text_of(window, "2", "remaining"), "0:00:59")

    def test_failed_poll_leaves_displays_unchanged(self):
        window = self.make_window([_timer(1, elapsed=5, remaining=55, running=True)])
        window._tick()
        before = (self.text_of(window, "1", "elapsed"), self.text_of(window, "1", "remaining"))
        self.client.fail_status = True
        window.refresh_status()
        after = (self.text_of(window, "1", "elapsed"), self.text_of(window, "1", "remaining"))
        self.assertEqual(before, after)
        self.assertIn("Network error", window.statusBar().currentMessage())
        self.assertTrue(window._poll_timer.isActive())

    def test_server_revives_expired_timer(self):
        window = self.make_window([_timer(1, elapsed=59, remaining=1, running=True)])
        window._tick()
        self.assertEqual(len(self.overlays(window, "1")), 1)

        self.client.timers["1"].update(elapsed_seconds=60, remaining_seconds=900, is_running=False)
        window.refresh_status()
        self.assertEqual(len(self.overlays(window, "1")), 0)
        self.assertEqual(window.binder.primary_button("1").text(), "▶ Start")
        self.assertTrue(window.binder.primary_button("1").isEnabled())

    def test_unknown_timer_in_poll_is_skipped(self):
        window = self.make_window([_timer(1)])
        self.client.timers["77"] = _timer(77)
        window.refresh_status()
        self.assertNotIn("77", window.engine)
        self.assertFalse(window.binder.has_card("77"))

    def test_non_finite_entry_only_drops_its_own_timer(self):
        window = self.make_window([_timer(1, running=True), _timer(2, running=True)])
        window._tick()
        self.client.timers["1"]["remaining_seconds"] = 30
        self.client.timers["2"]["elapsed_seconds"] = float("inf")
        window.refresh_status()
        self.assertEqual(window.engine.get("1").remaining_seconds, 30)
        self.assertEqual(window.engine.get("2").remaining_seconds, 59)

    def test_non_finite_seed_still_builds_cards(self):
        window = self.make_window([_timer(1, elapsed=float("inf"), remaining=60)])
        self.assertFalse(window.failed)
        self.assertTrue(window.binder.has_card("1"))
        self.assertEqual(window.engine.get("1").elapsed_seconds, 0)
        self.assertEqual(self.text_of(window, "1", "remaining"), "0:01:00")


class TestCommands(DashboardTestCase):

    def test_start_then_pause_ends_with_single_resume(self):
        window = self.make_window([_timer(1)])
        window.binder.primary_button("1").click()
        self.assertIn(("start", "1"), self.client.calls)
        self.assertEqual(window.binder.primary_button("1").text(), "⏸ Pause")
        self.assertIsNotNone(window.binder.running_indicator("1"))

        window.binder.primary_button("1").click()
        self.assertIn(("pause", "1"), self.client.calls)
        self.assertEqual(len(self.primary_buttons(window, "1")), 1)
        self.assertEqual(window.binder.primary_button("1").text(), "▶ Resume")
        self.assertIsNone(window.binder.running_indicator("1"))
        self.assertEqual(window.statusBar().currentMessage(), "Timer paused")

    def test_resume_sends_pause_and_runs_again(self):
        window = self.make_window([_timer(1, paused=True)])
        window.binder.primary_button("1").click()
        self.assertEqual(self.client.calls[-2], ("pause", "1"))
        self.assertEqual(window.binder.primary_button("1").text(), "⏸ Pause")
        self.assertEqual(window.statusBar().currentMessage(), "Timer resumed")

    def test_each_command_forces_resync(self):
        window = self.make_window([_timer(1)])
        status_calls = sum(1 for c in self.client.calls if c[0] == "status")
        window.binder.primary_button("1").click()
        self.assertEqual(sum(1 for c in self.client.calls if c[0] == "status"), status_calls + 1)

    def test_control_disabled_while_command_in_flight(self):
        from tdash.core.engine import Command
        window = self.make_window([_timer(1)])
        self.client.deferred = True
        window.binder.primary_button("1").click()
        self.assertFalse(window.binder.primary_button("1").isEnabled())

        # A second press while in flight goes nowhere
        window.binder._dispatch(Command.START, "1")
        self.assertEqual(sum(1 for c in self.client.calls if c[0] == "start"), 1)

        self.client.deliver()   # command reply, queues the resync
        self.assertFalse(window.binder.primary_button("1").isEnabled())
        self.client.deliver()   # resync
        self.assertTrue(window.binder.primary_button("1").isEnabled())
        self.assertEqual(window.binder.primary_button("1").text(), "⏸ Pause")

    def test_failed_command_changes_nothing(self):
        window = self.make_window([_timer(1)])
        self.client.fail_commands = True
        calls_before = len(self.client.calls)
        window.binder.primary_button("1").click()
        self.assertEqual(len(self.client.calls), calls_before + 1)
        self.assertEqual(window.binder.primary_button("1").text(), "▶ Start")
        self.assertTrue(window.binder.primary_button("1").isEnabled())
        self.assertEqual(window.statusBar().currentMessage(), "Network error")

    def test_idle_seed_with_nothing_remaining_is_expired(self):
        window = self.make_window([_timer(1, remaining=0)])
        self.assertIsNone(window.binder.primary_button("1"))
        self.assertEqual(len(self.overlays(window, "1")), 1)

    def test_bonus_grant_refreshes(self):
        window = self.make_window([_timer(1, elapsed=60, remaining=0)])
        window.client.grant_bonus("1", 15, window._on_bonus_done)
        self.assertEqual(window.engine.get("1").remaining_seconds, 900)
        self.assertEqual(len(self.overlays(window, "1")), 0)
        self.assertEqual(window.statusBar().currentMessage(), "15 minutes added")

    def test_stop_command(self):
        window = self.make_window([_timer(1, running=True)])
        window._on_stop("1")
        self.assertEqual(window.binder.primary_button("1").text(), "▶ Start")


class TestTeardown(DashboardTestCase):

    def test_late_seed_after_teardown_is_ignored(self):
        from tdash.core.config import DashboardConfig
        from tdash.ui.app import DashboardWindow
        client = FakeStatusClient([_timer(1)])
        client.deferred = True
        window = DashboardWindow(DashboardConfig(), client=client)
        self.addCleanup(window.deleteLater)
        window.init()
        window.teardown()
        client.deliver()
        self.assertEqual(len(window.engine), 0)
        self.assertFalse(window.binder.has_card("1"))
        self.assertFalse(window._tick_timer.isActive())

    def test_late_poll_and_command_after_teardown(self):
        window = self.make_window([_timer(1, running=True)])
        self.client.deferred = True
        window.refresh_status()
        window.binder.primary_button("1").click()
        window.teardown()
        self.client.deliver()
        self.assertFalse(window.alive)
        self.assertEqual(len(window.engine), 0)
        window._tick()
        window.refresh_status()
        self.assertEqual(self.client.pending, [])

    def test_close_event_tears_down(self):
        window = self.make_window([_timer(1)])
        window.show()
        window.close()
        self.assertFalse(window.alive)
        self.assertFalse(window._poll_timer.isActive())


class TestViewBinder(unittest.TestCase):

    def setUp(self):
        from tdash.core.engine import ReconciliationEngine
        from tdash.core.timer_state import SeedRecord
        from tdash.ui.ui_blueprint import UIBlueprint
        from tdash.ui.view_binder import ViewBinder
        self.engine = ReconciliationEngine()
        seeds = [SeedRecord("1", "One", 0, 60, True), SeedRecord("2", "Two", 0, 60, False)]
        self.engine.seed(seeds)
        self.binder = ViewBinder(self.engine, UIBlueprint.compute("Regular", "Calibri"))
        self.cards = self.binder.build_cards(seeds)
        self.addCleanup(lambda: [c.deleteLater() for c in self.cards])

    def test_overlay_insertion_is_idempotent(self):
        self.assertTrue(self.binder.show_expired_overlay("1"))
        self.assertFalse(self.binder.show_expired_overlay("1"))
        self.assertEqual(len(self.cards[0].findChildren(QWidget, "expiredOverlay")), 1)
        self.assertTrue(self.binder.hide_expired_overlay("1"))
        self.assertFalse(self.binder.hide_expired_overlay("1"))

    def test_running_indicator_is_idempotent(self):
        self.binder.update_controls("1")
        self.binder.update_controls("1")
        self.assertEqual(len(self.cards[0].findChildren(QLabel, "runningIndicator")), 1)

    def test_missing_card_is_skipped(self):
        self.assertFalse(self.binder.render("nope"))
        self.assertFalse(self.binder.render_tick("nope"))
        self.assertFalse(self.binder.show_expired_overlay("nope"))
        self.binder.update_controls("nope")

    def test_forgotten_cards_are_not_written(self):
        self.binder.forget()
        self.assertFalse(self.binder.render("1"))
        self.assertIsNone(self.binder.primary_button("1"))

    def test_unbound_command_is_ignored(self):
        self.binder.primary_button("2").click()
        self.assertFalse(self.binder.is_busy("2"))

    def test_command_table_dispatch(self):
        from tdash.core.engine import Command
        seen = []
        self.binder.bind_commands({Command.START: seen.append, Command.PAUSE: lambda tid: seen.append("p" + tid)})
        self.binder.primary_button("2").click()
        self.binder.primary_button("1").click()
        self.assertEqual(seen, ["2", "p1"])


if __name__ == "__main__":
    unittest.main()
