"""
config.py — Cấu hình runtime.

Thứ tự ưu tiên:
1. Tham số dòng lệnh
2. Biến môi trường (HOTPOT_FILE, HOTPOT_TICK_MS, HOTPOT_COPIED_SECONDS)
3. Giá trị mặc định bên dưới
"""

import os
from dataclasses import dataclass
from typing import Optional

SERVICE_NAME = "hotpot"
STORAGE_KEY = "_hotpot_storage"

TICK_INTERVAL_MS = 250      # chu kỳ tick của dashboard
COPIED_SECONDS = 2.0        # thời gian badge "copied" còn hiện
STATUS_SECONDS = 4.0        # thời gian dòng status còn hiện


@dataclass
class Config:
    storage_file: Optional[str] = None
    tick_interval_ms: int = TICK_INTERVAL_MS
    copied_seconds: float = COPIED_SECONDS
    status_seconds: float = STATUS_SECONDS
    verbose: bool = False
    log_file: Optional[str] = None


def _env_number(name: str, default, cast):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {value!r}") from None


def load_config(args=None) -> Config:
    """Tạo Config từ args CLI đã parse (object bất kỳ có thuộc tính trùng tên) và biến môi trường."""
    storage_file = getattr(args, "file", None) or os.environ.get("HOTPOT_FILE") or None
    return Config(
        storage_file=storage_file,
        tick_interval_ms=_env_number("HOTPOT_TICK_MS", TICK_INTERVAL_MS, int),
        copied_seconds=_env_number("HOTPOT_COPIED_SECONDS", COPIED_SECONDS, float),
        verbose=bool(getattr(args, "verbose", False)),
        log_file=getattr(args, "log_file", None),
    )
