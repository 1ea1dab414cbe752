import os
import time

from config import BACKUP_DIR


def current_time_ms() -> int:
    return int(time.time() * 1000)


def generate_backup_filename(db_name: str, time_ms: int | None = None, backup_dir: str = BACKUP_DIR) -> str:
    """Local dump path, unique per millisecond: ``<dir>/backup_<db>_<ms>.sql``."""
    if time_ms is None:
        time_ms = current_time_ms()
    return os.path.join(backup_dir, f"backup_{db_name}_{time_ms}.sql")


def get_final_key(filename: str, key_prefix: str | None = None) -> str:
    name = os.path.basename(filename)
    return f"{key_prefix}{name}" if key_prefix else name
