"""Backup audit logging.

Appends structured JSON entries to ~/.worldbackup/logs.jsonl.
Each entry records one event of a backup run (start, evict, snapshot,
compress, done, failed) with timestamp, world and snapshot name.
"""

import json
from datetime import datetime
from pathlib import Path

LOGS_FILE = Path.home() / ".worldbackup" / "logs.jsonl"


def write_log(entry, trace_id=None):
    """Append a log entry."""
    LOGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    entry = dict(entry)
    entry["timestamp"] = datetime.now().isoformat()
    if trace_id:
        entry["trace_id"] = trace_id
    with open(LOGS_FILE, "a") as f:
        f.write(json.dumps(entry) + "\n")


def read_log(limit=None):
    """Return logged entries oldest-first, skipping lines that aren't valid JSON."""
    if not LOGS_FILE.exists():
        return []
    entries = []
    for line in LOGS_FILE.read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return entries[-limit:] if limit else entries
