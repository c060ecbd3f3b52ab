from __future__ import annotations

import json
import logging
import os
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from pmreport.config import (
    ALLOWED_UPLOAD_SUFFIXES,
    DATA_DIR,
    MAX_UPLOAD_BYTES,
    METADATA_SUBDIR,
    SETTINGS_FILENAME,
    UPLOADS_SUBDIR,
    WEEKLY_DATA_FILENAME,
)
from pmreport.data import detect_week, load_projects, load_timesheet_entries
from pmreport.models import Project, ThresholdBand, TimesheetEntry
from pmreport.thresholds import (
    DEFAULT_VARIANCE_THRESHOLDS,
    ConfigurationError,
    normalize_thresholds,
    thresholds_to_records,
)


logger = logging.getLogger(__name__)

TIMESHEET = "timesheet"
COST_EFFICIENCY = "cost_efficiency"
FILE_TYPES = (TIMESHEET, COST_EFFICIENCY)
FILE_TYPE_ALIASES = {"timesheet": TIMESHEET, "cost_efficiency": COST_EFFICIENCY, "costEfficiency": COST_EFFICIENCY}


class StorageError(Exception):
    pass


class WeekNotFoundError(StorageError):
    def __init__(self, week_id: str, message: str = "Week not found"):
        super().__init__(message)
        self.week_id = week_id


class InvalidUploadError(StorageError):
    pass


class InvalidFileTypeError(StorageError, ValueError):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_file_type(file_type: str) -> str:
    try:
        return FILE_TYPE_ALIASES[file_type]
    except KeyError:
        raise InvalidFileTypeError("Invalid file type") from None


class WeekStore:
    """Disk-backed store of weekly CSV uploads, keyed by ISO week id.

    Layout under ``data_dir``::

        uploads/<stem>_<epoch_ms>.csv
        data/weekly-data.json    {week_id: {created_at, timesheet?, cost_efficiency?}}
        data/settings.json       {variance_thresholds: [...]}
    """

    def __init__(self, data_dir: Union[str, Path, None] = None, *, max_upload_bytes: int = MAX_UPLOAD_BYTES):
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self.uploads_dir = self.data_dir / UPLOADS_SUBDIR
        self.metadata_dir = self.data_dir / METADATA_SUBDIR
        self.weekly_data_file = self.metadata_dir / WEEKLY_DATA_FILENAME
        self.settings_file = self.metadata_dir / SETTINGS_FILENAME
        self.max_upload_bytes = max_upload_bytes
        self._lock = threading.RLock()
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.metadata_dir.mkdir(parents=True, exist_ok=True)

    # ---------------- metadata ----------------
    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.weekly_data_file.exists():
            return {}
        try:
            return json.loads(self.weekly_data_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to load weekly data from %s", self.weekly_data_file)
            return {}

    def _write_json(self, path: Path, payload: object) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        self._write_json(self.weekly_data_file, data)

    # ---------------- files ----------------
    def _validate_upload(self, filename: str, content: bytes) -> None:
        if not filename:
            raise InvalidUploadError("No file uploaded")
        if Path(filename).suffix.lower() not in ALLOWED_UPLOAD_SUFFIXES:
            raise InvalidUploadError("Only CSV files are allowed")
        if len(content) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            raise InvalidUploadError(f"File too large. Maximum size is {limit_mb:g}MB.")

    def _store_file(self, filename: str, content: bytes) -> Dict[str, Any]:
        original = Path(filename).name
        stem, suffix = Path(original).stem, Path(original).suffix
        stored = f"{stem}_{int(time.time() * 1000)}{suffix}"
        (self.uploads_dir / stored).write_bytes(content)
        logger.info("Stored upload %s as %s (%d bytes)", original, stored, len(content))
        return {
            "filename": stored,
            "original_name": original,
            "size": len(content),
            "uploaded_at": _now_iso(),
        }

    def file_path(self, meta: Optional[Dict[str, Any]]) -> Optional[Path]:
        if not meta or not meta.get("filename"):
            return None
        return self.uploads_dir / Path(meta["filename"]).name

    def _remove_file(self, meta: Optional[Dict[str, Any]]) -> None:
        path = self.file_path(meta)
        if path is not None and path.exists():
            path.unlink()
            logger.info("Removed upload %s", path.name)

    # ---------------- weeks ----------------
    def list_weeks(self) -> List[Dict[str, Any]]:
        data = self._load()
        weeks = [
            {
                "week_id": week_id,
                **meta,
                "has_timesheet": bool(meta.get(TIMESHEET)),
                "has_cost_efficiency": bool(meta.get(COST_EFFICIENCY)),
            }
            for week_id, meta in data.items()
        ]
        return sorted(weeks, key=lambda w: w["week_id"], reverse=True)

    def get_week(self, week_id: str) -> Dict[str, Any]:
        data = self._load()
        if week_id not in data:
            raise WeekNotFoundError(week_id)
        return {"week_id": week_id, **data[week_id]}

    def save_timesheet(self, filename: str, content: Union[bytes, str]) -> Tuple[str, Dict[str, Any]]:
        """Store a timesheet under the ISO week its dates fall in; returns ``(week_id, file_meta)``."""
        raw = content.encode("utf-8") if isinstance(content, str) else content
        self._validate_upload(filename, raw)
        week_id = detect_week(raw)
        if week_id is None:
            raise InvalidUploadError("Could not detect week from timesheet data")
        with self._lock:
            data = self._load()
            entry = data.setdefault(week_id, {"created_at": _now_iso()})
            self._remove_file(entry.get(TIMESHEET))
            entry[TIMESHEET] = self._store_file(filename, raw)
            self._save(data)
        return week_id, entry[TIMESHEET]

    def save_cost_efficiency(self, week_id: str, filename: str, content: Union[bytes, str]) -> Dict[str, Any]:
        raw = content.encode("utf-8") if isinstance(content, str) else content
        self._validate_upload(filename, raw)
        with self._lock:
            data = self._load()
            if week_id not in data:
                raise WeekNotFoundError(week_id, "Week not found. Please upload timesheet first.")
            entry = data[week_id]
            self._remove_file(entry.get(COST_EFFICIENCY))
            entry[COST_EFFICIENCY] = self._store_file(filename, raw)
            self._save(data)
        return entry[COST_EFFICIENCY]

    def delete_week(self, week_id: str) -> None:
        with self._lock:
            data = self._load()
            if week_id not in data:
                raise WeekNotFoundError(week_id)
            for file_type in FILE_TYPES:
                self._remove_file(data[week_id].get(file_type))
            del data[week_id]
            self._save(data)
        logger.info("Deleted week %s", week_id)

    def delete_file(self, week_id: str, file_type: str) -> None:
        """Remove one file from a week; the week itself goes once both files are gone."""
        key = normalize_file_type(file_type)
        with self._lock:
            data = self._load()
            if week_id not in data:
                raise WeekNotFoundError(week_id)
            entry = data[week_id]
            self._remove_file(entry.get(key))
            entry.pop(key, None)
            if not any(entry.get(t) for t in FILE_TYPES):
                del data[week_id]
            self._save(data)

    # ---------------- parsed data ----------------
    def _read_upload(self, meta: Optional[Dict[str, Any]]) -> Optional[bytes]:
        path = self.file_path(meta)
        if path is None or not path.exists():
            return None
        return path.read_bytes()

    def projects_for_week(self, week_id: str) -> Optional[List[Project]]:
        """Projects from the week's cost efficiency export, ``None`` when there is none."""
        week = self.get_week(week_id)
        content = self._read_upload(week.get(COST_EFFICIENCY))
        if content is None:
            return None
        try:
            return load_projects(content)
        except (pd.errors.ParserError, UnicodeDecodeError):
            logger.exception("Failed to parse cost efficiency for %s", week_id)
            return None

    def timesheet_for_week(self, week_id: str) -> Optional[List[TimesheetEntry]]:
        week = self.get_week(week_id)
        content = self._read_upload(week.get(TIMESHEET))
        if content is None:
            return None
        try:
            return load_timesheet_entries(content)
        except (pd.errors.ParserError, UnicodeDecodeError):
            logger.exception("Failed to parse timesheet for %s", week_id)
            return None

    def week_data(self, week_id: str) -> Dict[str, Any]:
        result: Dict[str, Any] = {"week_id": week_id}
        projects = self.projects_for_week(week_id)
        if projects is not None:
            result["projects"] = projects
        entries = self.timesheet_for_week(week_id)
        if entries is not None:
            result["timesheet_entries"] = entries
        return result

    # ---------------- threshold settings ----------------
    def load_thresholds(self) -> Tuple[ThresholdBand, ...]:
        if not self.settings_file.exists():
            return DEFAULT_VARIANCE_THRESHOLDS
        try:
            payload = json.loads(self.settings_file.read_text(encoding="utf-8"))
            return normalize_thresholds(payload.get("variance_thresholds"))
        except (OSError, json.JSONDecodeError, AttributeError, ConfigurationError):
            logger.warning("Ignoring unreadable threshold settings in %s", self.settings_file, exc_info=True)
            return DEFAULT_VARIANCE_THRESHOLDS

    def save_thresholds(self, raw: Iterable[Any]) -> Tuple[ThresholdBand, ...]:
        bands = normalize_thresholds(raw)
        with self._lock:
            self._write_json(self.settings_file, {"variance_thresholds": thresholds_to_records(bands)})
        return bands

    def reset_thresholds(self) -> Tuple[ThresholdBand, ...]:
        with self._lock:
            if self.settings_file.exists():
                self.settings_file.unlink()
        return DEFAULT_VARIANCE_THRESHOLDS
