from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
import json
from appdirs import user_config_dir, user_log_dir

APP_NAME = "PhotoForge"
DEFAULT_API_BASE_URL = "https://photoforge.base44.app"
DEFAULT_MAX_BATCH_FILES = 250
DEFAULT_UPLOAD_CONCURRENCY = 3
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_POLL_FAILURES = 3

def config_dir() -> Path:
    cfg_dir = Path(user_config_dir(appname=APP_NAME, appauthor=False))
    cfg_dir.mkdir(parents=True, exist_ok=True)
    return cfg_dir

def log_dir() -> Path:
    logs = Path(user_log_dir(appname=APP_NAME, appauthor=False))
    logs.mkdir(parents=True, exist_ok=True)
    return logs

def _config_path() -> Path:
    return config_dir() / "settings.json"

@dataclass
class AppSettings:
    """User-persistent settings.

    Stored in: ~/Library/Application Support/PhotoForge/settings.json (macOS),
    ~/.config/PhotoForge/settings.json (Linux).
    """
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout_seconds: float = 30.0
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY
    max_batch_files: int = DEFAULT_MAX_BATCH_FILES
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES
    last_project_id: str = ""

    @classmethod
    def load(cls, path: Path | None = None) -> "AppSettings":
        p = path or _config_path()
        if not p.exists():
            return cls()
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
            known = {f.name for f in fields(cls)}
            return cls(**{k: v for k, v in data.items() if k in known})
        except (OSError, ValueError, TypeError, AttributeError):
            # Fail safe: a corrupt settings file must not lock users out
            return cls()

    def save(self, path: Path | None = None) -> None:
        p = path or _config_path()
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")

    @staticmethod
    def project_log_path(project_id: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in project_id) or "project"
        return log_dir() / f"workflow_{safe}.log"
