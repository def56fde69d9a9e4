"""Configuration for the meet registration engine."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'meet.db'}",
)
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# HTTP API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))


# Org codes that map straight to a team (comma-separated CODE:team_id pairs).
# Codes are case-insensitive. Teams not listed are looked up by teams.org_code.
def _parse_org_team_codes(value: str) -> dict[str, int]:
    if not value:
        return {}
    result = {}
    for pair in value.split(","):
        code, sep, team_id = pair.partition(":")
        if not sep or not code.strip():
            continue
        try:
            result[code.strip().upper()] = int(team_id.strip())
        except ValueError:
            continue
    return result


ORG_TEAM_CODES = _parse_org_team_codes(os.getenv("ORG_TEAM_CODES", ""))
