from datetime import datetime, timezone

def utc_now_iso():
	"""Return current UTC time as ISO8601 string (no microseconds)."""
	return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

def local_today_str():
	"""Return local date as YYYY-MM-DD string."""
	return datetime.now().date().isoformat()

def parse_iso(value):
	"""Parse an ISO8601 string; naive values are taken as UTC. Returns None on bad input."""
	if not value:
		return None
	try:
		dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
	except ValueError:
		return None
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt

def fmt_hms(seconds: int) -> str:
	"""Format seconds as HH:MM:SS."""
	h = seconds // 3600
	m = (seconds % 3600) // 60
	s = seconds % 60
	return f"{h:02}:{m:02}:{s:02}"

def fmt_mmss(seconds: int) -> str:
	"""Format a countdown as MM:SS; negative input shows 00:00."""
	seconds = max(0, int(seconds))
	return f"{seconds // 60:02d}:{seconds % 60:02d}"
