"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    AUTOMAT_ROOT            — Data root holding projects/, builds/ and records/
                              (default: ./automat-data)
    AUTOMAT_GIT             — Git executable used for checkouts (default: git)
    AUTOMAT_LOG_LEVEL       — Root log level name (default: INFO)
    AUTOMAT_LOG_DIR         — Directory for daily log files, empty disables
                              file logging (default: logs)
    AUTOMAT_MAX_WORKERS     — Concurrent background builds (default: 2)
    AUTOMAT_JOB_HISTORY     — Finished background jobs kept for polling (default: 100)
    AUTOMAT_CAPTURE_OUTPUT  — Capture step output into the record instead of
                              streaming it to the server console (default: false)
    AUTOMAT_PERSIST_RECORDS — Write finished build records to disk (default: true)
    AUTOMAT_HOST / AUTOMAT_PORT — Bind address for `automat serve`
    AUTOMAT_CORS_ORIGINS    — Comma separated list of allowed browser origins

Build Root Layout:
    <AUTOMAT_ROOT>/projects/<name>.json   project definitions
    <AUTOMAT_ROOT>/builds/<name>/         exclusive build root per project
    <AUTOMAT_ROOT>/records/<name>/        finished build records

Concurrency:
    AUTOMAT_MAX_WORKERS bounds how many *different* projects build at the
    same time. Builds sharing a build root are always serialized.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


AUTOMAT_ROOT = os.path.abspath(os.getenv("AUTOMAT_ROOT", "automat-data"))
GIT_EXECUTABLE = os.getenv("AUTOMAT_GIT", "git")

LOG_LEVEL = os.getenv("AUTOMAT_LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("AUTOMAT_LOG_DIR", "logs")

# Background build pool size
MAX_WORKERS = int(os.getenv("AUTOMAT_MAX_WORKERS", 2))
# Oldest finished jobs are forgotten beyond this many
JOB_HISTORY = int(os.getenv("AUTOMAT_JOB_HISTORY", 100))

CAPTURE_OUTPUT = _env_flag("AUTOMAT_CAPTURE_OUTPUT", "false")
PERSIST_RECORDS = _env_flag("AUTOMAT_PERSIST_RECORDS", "true")

HOST = os.getenv("AUTOMAT_HOST", "127.0.0.1")
PORT = int(os.getenv("AUTOMAT_PORT", 8000))

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv(
        "AUTOMAT_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000",
    ).split(",")
    if origin.strip()
]
