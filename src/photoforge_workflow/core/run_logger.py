from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from photoforge_workflow.util.timeparse import format_log_timestamp


@dataclass
class RunLogger:
    path: Path

    def log(self, message: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        ts = format_log_timestamp(datetime.now())
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"[{ts}] {message}\n")

    def lines(self) -> list[str]:
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8").splitlines()


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Return a log-safe rendering of a credential."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)
