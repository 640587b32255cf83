import json
import os
from pathlib import Path

GLOBAL_CONFIG_FILE = Path.home() / ".worldbackup" / "config.json"
ENV_PREFIX = "WORLDBACKUP_"

DEFAULT_CONFIG = {
    "backup_root": "/media/backup/world",
    "worlds_root": "/opt/wurstmineberg/world",
    "world": "wurstmineberg",
    "world_command": "minecraft {world} command {command}",
    "flush_wait": 10,
    "size_workers": 4,
    "max_mirror_passes": None,
    # Optional: "cloudwatch_log_group": "/worldbackup/wurstmineberg"
    # Optional: "rsync_args": ["--exclude", "session.lock"]
}

# Keys that are numbers when given through the environment.
_INT_KEYS = {"flush_wait", "size_workers", "max_mirror_passes"}


def _read_json(path):
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}")


def load_global_config():
    """Load ~/.worldbackup/config.json, written by `worldbackup init`."""
    if GLOBAL_CONFIG_FILE.exists():
        return _read_json(GLOBAL_CONFIG_FILE)
    return {}


def save_global_config(updates):
    """Merge updates into ~/.worldbackup/config.json."""
    existing = load_global_config()
    existing.update(updates)
    GLOBAL_CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    GLOBAL_CONFIG_FILE.write_text(json.dumps(existing, indent=2) + "\n")


def env_overrides(environ=None):
    """WORLDBACKUP_BACKUP_ROOT=/mnt/x -> {"backup_root": "/mnt/x"}."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX):].lower()
        if key in _INT_KEYS:
            try:
                value = int(value) if value else None
            except ValueError:
                raise ValueError(f"{name} must be an integer, got {value!r}")
        overrides[key] = value
    return overrides


def load_config(path=None, environ=None):
    # Merge order: defaults → global config → --config file → environment
    config = {**DEFAULT_CONFIG, **load_global_config()}
    if path:
        path = Path(path)
        if not path.exists():
            raise ValueError(f"Config file not found: {path}")
        config.update(_read_json(path))
    config.update(env_overrides(environ))
    return config


def init_config(backup_root=None, worlds_root=None, world=None):
    """Write the global config, keeping anything already in it."""
    updates = {key: value for key, value in DEFAULT_CONFIG.items() if value is not None}
    updates.update(load_global_config())
    if backup_root:
        updates["backup_root"] = str(backup_root)
    if worlds_root:
        updates["worlds_root"] = str(worlds_root)
    if world:
        updates["world"] = world
    save_global_config(updates)
    return GLOBAL_CONFIG_FILE
