"""Engine configuration, optionally loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes")


def _env_size(name: str) -> tuple[int, int] | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    width, _, height = raw.lower().partition("x")
    return int(width), int(height)


@dataclass(frozen=True)
class EngineConfig:
    """Settings shared by the resolver, scheduler and browser manager."""

    test_id_attribute: str = "data-testid"
    action_timeout_ms: float = 30_000
    assertion_timeout_ms: float = 5_000
    poll_interval_ms: float = 100
    browser: str = "chromium"
    headless: bool = True
    maximized: bool = False
    video_dir: Path | None = None
    video_size: tuple[int, int] | None = None
    trace_dir: Path | None = None
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load config from ``AUTOWAIT_*`` environment variables."""
        video_dir = os.environ.get("AUTOWAIT_VIDEO_DIR")
        trace_dir = os.environ.get("AUTOWAIT_TRACE_DIR")
        return cls(
            test_id_attribute=os.environ.get("AUTOWAIT_TEST_ID_ATTRIBUTE", "data-testid"),
            action_timeout_ms=float(os.environ.get("AUTOWAIT_ACTION_TIMEOUT_MS", "30000")),
            assertion_timeout_ms=float(
                os.environ.get("AUTOWAIT_ASSERTION_TIMEOUT_MS", "5000")
            ),
            poll_interval_ms=float(os.environ.get("AUTOWAIT_POLL_INTERVAL_MS", "100")),
            browser=os.environ.get("AUTOWAIT_BROWSER", "chromium"),
            headless=_env_bool("AUTOWAIT_HEADLESS", True),
            maximized=_env_bool("AUTOWAIT_MAXIMIZED", False),
            video_dir=Path(video_dir) if video_dir else None,
            video_size=_env_size("AUTOWAIT_VIDEO_SIZE"),
            trace_dir=Path(trace_dir) if trace_dir else None,
            log_level=os.environ.get("AUTOWAIT_LOG_LEVEL", "INFO"),
            log_json=_env_bool("AUTOWAIT_LOG_JSON", False),
        )

    def with_overrides(self, **changes: object) -> EngineConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
