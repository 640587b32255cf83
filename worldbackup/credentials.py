import os
from pathlib import Path

from dotenv import dotenv_values

CREDENTIALS_FILE = Path.home() / ".worldbackup" / "credentials"


def load_credentials(path=None):
    """Load ~/.worldbackup/credentials into os.environ.

    Holds AWS credentials for CloudWatch tracing when the backup runs from a
    timer without a login environment. Format: KEY=VALUE, one per line, #
    comments. Variables already set in the environment win.
    """
    path = Path(path) if path else CREDENTIALS_FILE
    if not path.exists():
        return {}

    creds = {key: value for key, value in dotenv_values(path).items() if value}
    for key, value in creds.items():
        if key not in os.environ:
            os.environ[key] = value
    return creds


def save_credential(key, value, path=None):
    """Save or update a single credential. The file is kept private to the owner."""
    path = Path(path) if path else CREDENTIALS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.parent.chmod(0o700)

    lines = []
    found = False
    if path.exists():
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                if stripped.split("=", 1)[0].strip() == key:
                    lines.append(f"{key}={value}")
                    found = True
                    continue
            lines.append(line)
    if not found:
        lines.append(f"{key}={value}")

    path.write_text("\n".join(lines) + "\n")
    path.chmod(0o600)
