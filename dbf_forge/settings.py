"""
Limits, defaults, and environment overrides.

Every constant here is used directly by the core; `ForgeSettings` bundles the
few knobs that a deployment may want to change without touching code:

    DBF_FORGE_TEXT_ENCODING         code page for .csv/.txt input ("auto" = chardet)
    DBF_FORGE_DAYFIRST              "1"/"0": locale date pass reads dd/mm before mm/dd
    DBF_FORGE_LOG_DIR               directory for session logs
    DBF_FORGE_WRITE_ONLY_THRESHOLD  row count above which .xlsx output streams
    DBF_FORGE_MAX_PATH_SUFFIX       highest _N suffix tried for a locked output
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

# ── Reader / inference ─────────────────────────────────────────────────────────
LEGACY_TEXT_ENCODING = "cp1252"
DEBUG_SAMPLE_ROWS = 50
INFERENCE_SAMPLE_TARGET = 200
MAJORITY_THRESHOLD = 0.5
MAX_HEADER_LENGTH = 128
MAX_COLUMN_REPEAT = 1000

# ── Type bounds ────────────────────────────────────────────────────────────────
MAX_CHARACTER_LENGTH = 254
CHARACTER_PADDING = 10
MIN_NUMERIC_LENGTH = 10
MAX_NUMERIC_LENGTH = 20
MAX_DECIMALS = 18
INTEGER_LENGTH = 11
DATE_LENGTH = 8
LOGICAL_LENGTH = 1
MIN_TIME_LENGTH = 8
MAX_TIME_LENGTH = 50
MAX_FIELD_NAME = 10
TIME_FALLBACK_LENGTH = 20

# ── Naming / output ────────────────────────────────────────────────────────────
DEFAULT_MERGE_NAME = "Fusion_Master"
DEFAULT_OUTPUT_NAME = "Untitled"
DEFAULT_FIELD_NAME = "FIELD"
EMPTY_HEADER_NAME = "EMPTY_FIELD"
MANUAL_FIELD_NAME = "NEW"
MANUAL_FIELD_LENGTH = 50
PREVIEW_ROWS = 20
WRITE_ONLY_THRESHOLD = 5000
MAX_PATH_SUFFIX = 999
VALIDATION_WINDOW_SECONDS = 0.5
LOG_RING_SIZE = 300


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ForgeSettings:
    text_encoding: str = LEGACY_TEXT_ENCODING
    dayfirst: bool = True
    log_dir: Optional[Path] = None
    write_only_threshold: int = WRITE_ONLY_THRESHOLD
    max_path_suffix: int = MAX_PATH_SUFFIX

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ForgeSettings":
        env = os.environ if environ is None else environ
        settings = cls()
        encoding = env.get("DBF_FORGE_TEXT_ENCODING")
        if encoding:
            settings.text_encoding = encoding.strip()
        dayfirst = env.get("DBF_FORGE_DAYFIRST")
        if dayfirst:
            settings.dayfirst = _env_flag(dayfirst)
        log_dir = env.get("DBF_FORGE_LOG_DIR")
        if log_dir:
            settings.log_dir = Path(log_dir)
        threshold = env.get("DBF_FORGE_WRITE_ONLY_THRESHOLD")
        if threshold:
            try:
                settings.write_only_threshold = max(1, int(threshold))
            except ValueError as exc:
                raise ValueError(f"DBF_FORGE_WRITE_ONLY_THRESHOLD must be an integer, got {threshold!r}") from exc
        suffix = env.get("DBF_FORGE_MAX_PATH_SUFFIX")
        if suffix:
            try:
                settings.max_path_suffix = max(1, int(suffix))
            except ValueError as exc:
                raise ValueError(f"DBF_FORGE_MAX_PATH_SUFFIX must be an integer, got {suffix!r}") from exc
        return settings

    def resolved_log_dir(self) -> Path:
        if self.log_dir is not None:
            return self.log_dir
        return Path.cwd() / "dbf-forge-logs"
