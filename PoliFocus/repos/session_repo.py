import sqlite3
from pathlib import Path
from PoliFocus.core.paths import db_path
from PoliFocus.core.clock import local_today_str, parse_iso
from PoliFocus.core.models import PomodoroSession, TimerMode

SCHEMA_PATH = Path(__file__).parent.parent / "SQL" / "schema.sql"

def connect(dbfile=None):
	"""Open SQLite connection and ensure schema is applied."""
	conn = sqlite3.connect(dbfile or db_path())
	conn.row_factory = sqlite3.Row
	with open(SCHEMA_PATH, encoding="utf-8") as f:
		conn.executescript(f.read())
	return conn

def _row_to_session(row):
	return PomodoroSession(
		id=row["id"],
		task_id=row["task_id"],
		type=TimerMode.parse(row["type"]) or TimerMode.FOCUS,
		start_time=row["start_utc"],
		end_time=row["end_utc"],
		completed=bool(row["completed"]),
		interrupted=bool(row["interrupted"]),
		cycle_number=row["cycle_number"],
	)

def add_session(session, dbfile=None):
	"""Store a finished (or interrupted) segment. Returns the session with its id set."""
	start_dt = parse_iso(session.start_time)
	end_dt = parse_iso(session.end_time)
	duration = None
	if start_dt and end_dt:
		duration = max(0, int((end_dt - start_dt).total_seconds()))
	mode = TimerMode.parse(session.type) or TimerMode.FOCUS
	with connect(dbfile) as conn:
		cur = conn.execute(
			"""
			INSERT INTO sessions (task_id, type, start_utc, end_utc, local_date,
				completed, interrupted, cycle_number, duration_sec)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
			""",
			(session.task_id, mode.value, session.start_time, session.end_time, local_today_str(),
				int(session.completed), int(session.interrupted), int(session.cycle_number), duration)
		)
		session.id = cur.lastrowid
	return session

def list_sessions(task_id=None, dbfile=None):
	"""Return stored sessions, oldest first; optionally only one task's."""
	with connect(dbfile) as conn:
		if task_id is None:
			cur = conn.execute("SELECT * FROM sessions ORDER BY start_utc, id")
		else:
			cur = conn.execute("SELECT * FROM sessions WHERE task_id=? ORDER BY start_utc, id", (task_id,))
		return [_row_to_session(r) for r in cur.fetchall()]

def today_focus_seconds(dbfile=None):
	"""Sum focus duration_sec for sessions logged today."""
	with connect(dbfile) as conn:
		cur = conn.execute(
			"SELECT COALESCE(SUM(duration_sec),0) as total FROM sessions WHERE local_date=? AND type=? AND duration_sec IS NOT NULL",
			(local_today_str(), TimerMode.FOCUS.value)
		)
		row = cur.fetchone()
		return row["total"] if row else 0

def clear_sessions(dbfile=None):
	with connect(dbfile) as conn:
		conn.execute("DELETE FROM sessions")
