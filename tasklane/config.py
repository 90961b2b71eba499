"""Configuration loading and defaults.

Reads from config.toml at the project root, with environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv

# Look for .env in the package's parent directory (project root)
_project_root = Path(__file__).resolve().parent.parent
load_dotenv(_project_root / ".env")
load_dotenv()  # also check cwd

# ---------------------------------------------------------------------------
# Load config.toml
# ---------------------------------------------------------------------------

_toml_path = Path(os.getenv("TASKLANE_CONFIG", str(_project_root / "config.toml")))
_cfg: dict = {}
if _toml_path.exists():
    with open(_toml_path, "rb") as f:
        _cfg = tomllib.load(f)

_executor = _cfg.get("executor", {})
_worker = _cfg.get("worker", {})
_planner = _cfg.get("planner", {})
_server = _cfg.get("server", {})

# ---------------------------------------------------------------------------
# Provider API keys (env-only, never in toml)
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

DEFAULT_TOOL_TIMEOUT_MS = int(os.getenv("TASKLANE_TOOL_TIMEOUT_MS", _executor.get("timeout_ms", 30000)))
DEFAULT_MAX_RETRIES = int(os.getenv("TASKLANE_MAX_RETRIES", _executor.get("max_retries", 3)))
BACKOFF_BASE_MS = int(os.getenv("TASKLANE_BACKOFF_BASE_MS", _executor.get("backoff_base_ms", 1000)))
BACKOFF_CAP_MS = int(os.getenv("TASKLANE_BACKOFF_CAP_MS", _executor.get("backoff_cap_ms", 10000)))

# ---------------------------------------------------------------------------
# Queue / workers
# ---------------------------------------------------------------------------

TASK_QUEUE_NAME = os.getenv("TASKLANE_TASK_QUEUE", _worker.get("queue", "task"))
WORKER_CONCURRENCY = int(os.getenv("TASKLANE_WORKER_CONCURRENCY", _worker.get("concurrency", 4)))

# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

PLANNER_MODEL = os.getenv("TASKLANE_PLANNER_MODEL", _planner.get("model", "openai/gpt-4o-mini"))
PLANNER_TEMPERATURE = float(os.getenv("TASKLANE_PLANNER_TEMPERATURE", _planner.get("temperature", 0.2)))
PLANNER_MAX_TOKENS = int(os.getenv("TASKLANE_PLANNER_MAX_TOKENS", _planner.get("max_tokens", 2000)))
PLANNER_TIMEOUT_MS = int(os.getenv("TASKLANE_PLANNER_TIMEOUT_MS", _planner.get("timeout_ms", 60000)))

# ---------------------------------------------------------------------------
# Server / events
# ---------------------------------------------------------------------------

SERVER_HOST = os.getenv("TASKLANE_HOST", _server.get("host", "0.0.0.0"))
SERVER_PORT = int(os.getenv("TASKLANE_PORT", _server.get("port", 8000)))
LOG_LEVEL = os.getenv("TASKLANE_LOG_LEVEL", _server.get("log_level", "INFO")).upper()

_event_log = os.getenv("TASKLANE_EVENT_LOG", _server.get("event_log", ""))
EVENT_LOG_FILE = Path(_event_log) if _event_log else None
