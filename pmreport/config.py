from __future__ import annotations

import os
from pathlib import Path
from typing import List


ROOT_DIR = Path(__file__).resolve().parents[1]

DATA_DIR = Path(os.getenv("PMREPORT_DATA_DIR", str(ROOT_DIR / "server_data")))
UPLOADS_SUBDIR = "uploads"
METADATA_SUBDIR = "data"
WEEKLY_DATA_FILENAME = "weekly-data.json"
SETTINGS_FILENAME = "settings.json"

MAX_UPLOAD_MB = float(os.getenv("PMREPORT_MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = int(MAX_UPLOAD_MB * 1024 * 1024)
ALLOWED_UPLOAD_SUFFIXES = (".csv",)


def cors_origins() -> List[str]:
    raw = os.getenv("PMREPORT_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    return [o.strip() for o in raw.split(",") if o.strip()]
