import json
import logging
from dataclasses import asdict

from PoliFocus.core.clock import utc_now_iso
from PoliFocus.core.models import AppConfig, PomodoroSession, Task
from PoliFocus.core.paths import db_path
from PoliFocus.repos import session_repo

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
	"tasks": "polifocus_tasks",
	"config": "polifocus_config",
	"last_id": "polifocus_last_id",
}

EXPORT_VERSION = "1.1.0"


class StorageRepo:
	"""Key/value persistence for tasks and config, JSON encoded in app_state.

	Reads fall back to empty/default values when a stored blob is unreadable;
	writes let sqlite errors propagate to the caller.
	"""

	def __init__(self, dbfile=None):
		self.dbfile = dbfile or db_path()

	# ----- raw key/value -----
	def get(self, key):
		with session_repo.connect(self.dbfile) as conn:
			row = conn.execute("SELECT value FROM app_state WHERE key=?", (key,)).fetchone()
			return row["value"] if row else None

	def set(self, key, value):
		with session_repo.connect(self.dbfile) as conn:
			conn.execute(
				"""
				INSERT INTO app_state(key, value) VALUES(?, ?)
				ON CONFLICT(key) DO UPDATE SET value=excluded.value
				""",
				(key, value)
			)

	def remove(self, key):
		with session_repo.connect(self.dbfile) as conn:
			conn.execute("DELETE FROM app_state WHERE key=?", (key,))

	def _get_json(self, key, default):
		raw = self.get(key)
		if raw is None:
			return default
		try:
			return json.loads(raw)
		except json.JSONDecodeError:
			logger.error("Stored value for %s is not valid JSON, ignoring it", key)
			return default

	def _next_id(self):
		last = self.get(STORAGE_KEYS["last_id"])
		next_id = (int(last) if last else 0) + 1
		self.set(STORAGE_KEYS["last_id"], str(next_id))
		return next_id

	# ----- tasks -----
	def get_tasks(self):
		tasks = []
		for item in self._get_json(STORAGE_KEYS["tasks"], []):
			try:
				tasks.append(Task.from_dict(item))
			except TypeError:
				logger.warning("Skipping malformed stored task: %r", item)
		return tasks

	def save_tasks(self, tasks):
		self.set(STORAGE_KEYS["tasks"], json.dumps([t.to_dict() for t in tasks]))

	def add_task(self, task_data):
		"""Store a new task under the next sequential id and return it."""
		data = task_data.to_dict() if isinstance(task_data, Task) else dict(task_data)
		data.pop("id", None)
		now = utc_now_iso()
		data["created_at"] = data.get("created_at") or now
		data["updated_at"] = now
		task = Task.from_dict({**data, "id": self._next_id()})
		tasks = self.get_tasks()
		tasks.append(task)
		self.save_tasks(tasks)
		return task

	def update_task(self, task_id, updates):
		tasks = self.get_tasks()
		for i, task in enumerate(tasks):
			if task.id == task_id:
				merged = {**task.to_dict(), **updates, "id": task_id, "updated_at": utc_now_iso()}
				tasks[i] = Task.from_dict(merged)
				self.save_tasks(tasks)
				return tasks[i]
		return None

	def delete_task(self, task_id):
		tasks = self.get_tasks()
		kept = [t for t in tasks if t.id != task_id]
		if len(kept) == len(tasks):
			return False
		self.save_tasks(kept)
		return True

	def get_task_by_id(self, task_id):
		for task in self.get_tasks():
			if task.id == task_id:
				return task
		return None

	# ----- sessions -----
	def get_sessions(self, task_id=None):
		return session_repo.list_sessions(task_id, dbfile=self.dbfile)

	def add_session(self, session):
		return session_repo.add_session(session, dbfile=self.dbfile)

	# ----- config -----
	def get_config(self):
		data = self._get_json(STORAGE_KEYS["config"], None)
		if not isinstance(data, dict):
			return AppConfig()
		return AppConfig.from_dict(data)

	def save_config(self, config):
		self.set(STORAGE_KEYS["config"], json.dumps(config.to_dict()))

	def update_config(self, updates):
		updated = self.get_config().merged(updates)
		self.save_config(updated)
		return updated

	# ----- utilities -----
	def clear_all(self):
		"""Drop tasks and sessions. Settings and the id counter are kept so ids never repeat."""
		self.remove(STORAGE_KEYS["tasks"])
		session_repo.clear_sessions(dbfile=self.dbfile)
		logger.info("App data cleared (id counter preserved)")

	def export_data(self):
		data = {
			"tasks": [t.to_dict() for t in self.get_tasks()],
			"sessions": [
				{**asdict(s), "type": s.type.value} for s in self.get_sessions()
			],
			"config": self.get_config().to_dict(),
			"exportDate": utc_now_iso(),
			"version": EXPORT_VERSION,
		}
		return json.dumps(data, indent=2)

	def import_data(self, json_data):
		"""Load an export. Returns False (and changes nothing) when the payload is unreadable."""
		try:
			data = json.loads(json_data)
			tasks = [Task.from_dict(t) for t in data.get("tasks") or []]
			config = AppConfig.from_dict(data["config"]) if data.get("config") else None
			sessions = [
				PomodoroSession(**{k: v for k, v in s.items() if k != "id"})
				for s in data.get("sessions") or []
			]
		except (json.JSONDecodeError, TypeError, AttributeError) as e:
			logger.error("Import failed: %s", e)
			return False
		if data.get("tasks") is not None:
			self.save_tasks(tasks)
			max_id = max((t.id for t in tasks), default=0)
			self.set(STORAGE_KEYS["last_id"], str(max_id))
		if config is not None:
			self.save_config(config)
		if sessions:
			session_repo.clear_sessions(dbfile=self.dbfile)
			for session in sessions:
				self.add_session(session)
		return True
