import pytest
from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer

from PoliFocus.core.timer_engine import TimerEngine
from PoliFocus.repos.storage_repo import StorageRepo
from PoliFocus.services.notification_service import NotificationService
from PoliFocus.services.task_service import TaskService
from PoliFocus.services.timer_service import TimerController


@pytest.fixture(scope="session", autouse=True)
def qapp():
	app = QCoreApplication.instance() or QCoreApplication([])
	yield app


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
	"""Keep every test away from the real user data dir."""
	path = tmp_path / "data"
	monkeypatch.setenv("POLIFOCUS_DATA_DIR", str(path))
	return path


def pump(timeout_ms, signal=None):
	"""Run a local event loop until `signal` fires or the timeout passes; returns its emissions."""
	loop = QEventLoop()
	hits = []

	def done(*args):
		hits.append(args)
		loop.quit()

	if signal is not None:
		signal.connect(done)
	timer = QTimer()
	timer.setSingleShot(True)
	timer.timeout.connect(loop.quit)
	timer.start(timeout_ms)
	loop.exec()
	timer.stop()
	if signal is not None:
		signal.disconnect(done)
	return hits


@pytest.fixture
def spin():
	return pump


class Recorder:
	"""Stands in for the desktop notifier."""

	def __init__(self):
		self.calls = []

	def __call__(self, title, message):
		self.calls.append((title, message))

	def messages(self):
		return [m for _, m in self.calls]


@pytest.fixture
def storage(tmp_path):
	return StorageRepo(tmp_path / "test.db")


@pytest.fixture
def notifier():
	return Recorder()


@pytest.fixture
def notifications(notifier):
	service = NotificationService(notify=notifier)
	yield service
	service.reschedule_all([])


@pytest.fixture
def task_service(storage, notifications):
	return TaskService(storage, notifications)


@pytest.fixture
def engine():
	eng = TimerEngine()
	yield eng
	eng.pause()


@pytest.fixture
def controller(engine, task_service, storage, notifications):
	return TimerController(engine, task_service, storage, notifications)

