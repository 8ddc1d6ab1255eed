"""Runtime settings, read from the environment (and a `.env` at the repo root)."""

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

# Load environment variables from .env file
load_dotenv(REPO_ROOT / ".env")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
RUNECAST_MODEL = os.getenv("RUNECAST_MODEL", "gpt-4o-mini")
RUNECAST_ANALYSIS_MODEL = os.getenv("RUNECAST_ANALYSIS_MODEL", "gpt-4o")

# Per-user journal location; relative overrides resolve against the working directory
DATA_DIR = Path(os.getenv("RUNECAST_DATA_DIR", str(Path.home() / ".runecast"))).expanduser().resolve()

# 0 or less means keep all
RETENTION_DAYS = int(os.getenv("RUNECAST_RETENTION_DAYS", "90"))
RETENTION_CHOICES = (30, 90, 365, -1)

MIN_READINGS_FOR_ANALYSIS = int(os.getenv("RUNECAST_MIN_READINGS_FOR_ANALYSIS", "5"))

SEED = os.getenv("RUNECAST_SEED") or None

LOG_LEVEL = os.getenv("RUNECAST_LOG_LEVEL", "INFO").upper()
