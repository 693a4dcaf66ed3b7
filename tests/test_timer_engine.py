import pytest
from PySide6.QtCore import QEventLoop, QObject, QTimer, Signal, Slot

from PoliFocus.core.models import TimerMode
from PoliFocus.core.timer_engine import (
	LONG_BREAK_MESSAGE,
	PAUSE,
	SET_STATE,
	SHORT_BREAK_MESSAGE,
	START,
	TASK_FINISHED_MESSAGE,
	TimerEngine,
)
from PoliFocus.core.worker import EngineWorker


def run(engine, seconds):
	for _ in range(seconds):
		engine.advance()


def record(signal):
	events = []
	signal.connect(events.append)
	return events


@pytest.fixture
def fast_engine():
	eng = TimerEngine({"focus": 2, "shortBreak": 1, "longBreak": 3})
	yield eng
	eng.pause()


def test_task_bound_is_never_overshot(engine):
	finished = record(engine.task_finished)
	ticks = record(engine.tick)
	engine.set_state({"task_duration_seconds": 1000, "running": True})

	run(engine, 1200)

	assert len(finished) == 1
	assert finished[0]["message"] == TASK_FINISHED_MESSAGE
	assert finished[0]["total_elapsed"] == 1000
	assert engine.state.total_elapsed == 1000
	assert engine.state.time_left == 0
	assert not engine.state.running
	assert max(t["total_elapsed"] for t in ticks) < 1000


def test_focus_auto_continues_into_break(fast_engine):
	changes = record(fast_engine.mode_changed)
	fast_engine.start()

	run(fast_engine, 2)

	assert changes[0]["previous_mode"] is TimerMode.FOCUS
	assert changes[0]["mode"] is TimerMode.SHORT_BREAK
	assert changes[0]["message"] == SHORT_BREAK_MESSAGE
	assert changes[0]["time_left"] == 1
	assert changes[0]["cycles_completed"] == 1
	assert changes[0]["total_elapsed"] == 2
	assert fast_engine.state.running


def test_long_break_every_fourth_cycle(fast_engine):
	changes = record(fast_engine.mode_changed)
	fast_engine.start()

	# three focus+short rounds of 3s, then the fourth focus
	run(fast_engine, 11)

	breaks = [c for c in changes if c["mode"].is_break]
	assert [c["mode"] for c in breaks] == [TimerMode.SHORT_BREAK] * 3 + [TimerMode.LONG_BREAK]
	assert breaks[-1]["message"] == LONG_BREAK_MESSAGE
	assert fast_engine.state.cycles_completed == 4
	assert fast_engine.state.time_left == 3


def test_break_cycles_count_only_focus(fast_engine):
	fast_engine.start()
	run(fast_engine, 3)
	assert fast_engine.state.mode is TimerMode.FOCUS
	assert fast_engine.state.cycles_completed == 1
	# breaks count toward elapsed time
	assert fast_engine.state.total_elapsed == 3


def test_pause_is_idempotent(engine):
	updates = record(engine.state_update)
	engine.start()
	engine.pause()
	engine.pause()

	assert len(updates) == 2
	assert updates[-1].running is False


def test_start_while_running_is_noop(engine):
	updates = record(engine.state_update)
	engine.start()
	engine.start()
	assert len(updates) == 1


def test_start_with_nothing_left_completes_the_mode(engine):
	engine.set_state({"time_left": 0})
	changes = record(engine.mode_changed)

	engine.start()

	assert len(changes) == 1
	assert changes[0]["mode"] is TimerMode.SHORT_BREAK
	assert engine.state.cycles_completed == 1


def test_start_after_bound_finishes_again_without_ticking(engine):
	engine.set_state({"task_duration_seconds": 10, "total_elapsed": 10})
	finished = record(engine.task_finished)
	engine.start()
	assert len(finished) == 1
	assert not engine.state.running


def test_set_state_clamps_bad_input(engine):
	engine.set_state({
		"time_left": -5,
		"cycles_completed": "lots",
		"mode": "nap",
		"durations": {"focus": -3, "siesta": 60},
		"colour": "red",
	})
	st = engine.state
	assert st.time_left == 0
	assert st.cycles_completed == 0
	assert st.mode is TimerMode.FOCUS
	assert st.durations[TimerMode.FOCUS] == 1
	assert "siesta" not in st.durations


def test_set_state_keeps_elapsed_within_task(engine):
	engine.set_state({"task_duration_seconds": 60, "total_elapsed": 90})
	assert engine.state.total_elapsed == 60


def test_durations_rebase_idle_untracked_timer(engine):
	engine.set_state({"mode": "shortBreak", "time_left": 10})
	engine.set_state({"durations": {"focus": 1200}})
	assert engine.state.mode is TimerMode.FOCUS
	assert engine.state.time_left == 1200


def test_durations_do_not_rebase_a_task(engine):
	engine.set_state({"task_duration_seconds": 3000, "time_left": 500})
	engine.set_state({"durations": {"focus": 1200}})
	assert engine.state.time_left == 500


def test_set_state_running_starts_and_stops(engine):
	engine.set_state({"running": True})
	assert engine.state.running
	engine.set_state({"running": False})
	assert not engine.state.running


def test_reset_returns_to_fresh_focus(engine):
	engine.set_state({"task_duration_seconds": 3000, "running": True})
	run(engine, 950)
	updates = record(engine.state_update)

	engine.reset()

	snap = updates[-1]
	assert snap.mode is TimerMode.FOCUS
	assert snap.time_left == 900
	assert snap.total_elapsed == 0
	assert snap.cycles_completed == 0
	assert snap.task_duration_seconds == 0
	assert not snap.running


def test_snapshot_is_a_copy(engine):
	snap = engine.snapshot()
	snap.durations[TimerMode.FOCUS] = 1
	snap.time_left = 3
	assert engine.state.durations[TimerMode.FOCUS] == 900
	assert engine.state.time_left == 900


def test_handle_command_dispatch(engine):
	engine.handle_command(SET_STATE, {"time_left": 42})
	engine.handle_command(START, {})
	assert engine.state.running
	engine.handle_command(PAUSE, None)
	assert not engine.state.running
	engine.handle_command("EXPLODE", {})
	assert engine.state.time_left == 42


class Collector(QObject):
	send = Signal(str, object)

	def __init__(self, loop):
		super().__init__()
		self.loop = loop
		self.finished = []
		self.changes = []

	@Slot(object)
	def on_mode_changed(self, payload):
		self.changes.append(payload)

	@Slot(object)
	def on_finished(self, payload):
		self.finished.append(payload)
		self.loop.quit()


def test_worker_ticks_on_its_own_thread():
	worker = EngineWorker({"focus": 3, "shortBreak": 1, "longBreak": 1}, interval_ms=10)
	loop = QEventLoop()
	collector = Collector(loop)
	collector.send.connect(worker.engine.handle_command)
	worker.engine.mode_changed.connect(collector.on_mode_changed)
	worker.engine.task_finished.connect(collector.on_finished)

	worker.start()
	try:
		assert worker.is_running()
		collector.send.emit(SET_STATE, {"task_duration_seconds": 6, "running": True})
		timeout = QTimer()
		timeout.setSingleShot(True)
		timeout.timeout.connect(loop.quit)
		timeout.start(3000)
		loop.exec()
		timeout.stop()
	finally:
		worker.stop()

	assert not worker.is_running()
	assert len(collector.finished) == 1
	assert collector.finished[0]["total_elapsed"] == 6
	assert [c["mode"] for c in collector.changes][:2] == [TimerMode.SHORT_BREAK, TimerMode.FOCUS]
	worker.stop()
