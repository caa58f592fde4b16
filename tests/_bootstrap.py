"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "OAUTH_CLIENT_ID": "test-client-id",
    "OAUTH_CLIENT_SECRET": "test-client-secret",
    "OAUTH_REDIRECT_URI": "https://example.com/api/oauth/callback",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "DATABASE_PATH": str(Path(tempfile.mkdtemp()) / "integration.sqlite3"),
    "COOKIE_SECURE": "false",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
