import os
from pathlib import Path

APP_NAME = "PoliFocus"
DATA_DIR_ENV = "POLIFOCUS_DATA_DIR"
DB_FILENAME = "polifocus.db"

def user_data_dir(app_name=APP_NAME):
	"""Return per-user data dir.

	POLIFOCUS_DATA_DIR wins when set; otherwise LOCALAPPDATA on Windows and
	XDG_DATA_HOME (or ~/.local/share) elsewhere, with the app name appended.
	"""
	override = os.environ.get(DATA_DIR_ENV)
	if override:
		path = Path(override).expanduser()
	else:
		if os.name == "nt":
			base = os.environ.get("LOCALAPPDATA", os.path.expanduser("~\\AppData\\Local"))
		elif os.name == "posix":
			base = os.environ.get("XDG_DATA_HOME", os.path.expanduser("~/.local/share"))
		else:
			base = os.path.expanduser("~")
		path = Path(base) / app_name
	path.mkdir(parents=True, exist_ok=True)
	return path

def db_path():
	"""Return Path to the sqlite store inside the user data dir."""
	return user_data_dir() / DB_FILENAME
