from threading import Lock
import os
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import urlparse, urlunparse
import idna

__all__ = [
    "log_lock",
    "log",
    "LOG_DIR",
    "is_valid_url",
    "normalize_site_url",
    "w3c_datetime",
    "format_priority",
    "part_file_path",
]

# 🔒 Глобальный лок для записи в лог-файл
log_lock = Lock()

LOG_DIR = os.getenv("SITEMAP_LOG_DIR", "sitemap_logs")
log_file_path = os.path.join(LOG_DIR, f"sitemap_log_{datetime.now():%Y%m%d_%H%M%S}.txt")

ALLOWED_SCHEMES = ("http", "https")


def log(message: str):
    """Вывести сообщение в консоль и дописать его в лог-файл."""
    print(message)
    with log_lock:
        os.makedirs(LOG_DIR, exist_ok=True)
        with open(log_file_path, "a", encoding="utf-8") as f:
            f.write(message + "\n")


def _ascii_host(url: str) -> Optional[tuple]:
    """Разобрать адрес и вернуть (parsed, хост в ASCII) либо None."""
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return None
    try:
        parsed.port  # ValueError при нечисловом порте
    except ValueError:
        return None

    host = parsed.hostname
    if ":" in host:
        # IPv6-литерал, idna к нему не применяется
        return parsed, f"[{host}]"
    try:
        return parsed, idna.encode(host, uts46=True).decode("ascii")
    except idna.IDNAError:
        return None


def is_valid_url(url: str) -> bool:
    """Проверить, что строка является абсолютным http(s)-адресом с корректным хостом."""
    if not isinstance(url, str) or not url or any(ch.isspace() for ch in url):
        return False
    return _ascii_host(url) is not None


def normalize_site_url(url: str) -> str:
    """
    Привести адрес сайта к виду, пригодному для <loc>:
    хост в punycode, без завершающего слэша.
    """
    parsed, host = _ascii_host(url)
    netloc = host
    if parsed.port is not None:
        netloc = f"{netloc}:{parsed.port}"
    if parsed.username:
        userinfo = parsed.username
        if parsed.password:
            userinfo = f"{userinfo}:{parsed.password}"
        netloc = f"{userinfo}@{netloc}"
    return urlunparse(parsed._replace(netloc=netloc)).rstrip("/")


def w3c_datetime(value=None) -> str:
    """
    Дата в формате W3C Datetime (ISO-8601 с часовым поясом).
    Принимает unix-время, datetime, date или None (текущий момент).
    """
    if value is None:
        return datetime.now().astimezone().isoformat(timespec="seconds")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.astimezone()
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value).astimezone().isoformat(timespec="seconds")
    raise TypeError(f"Неподдерживаемый тип даты: {type(value).__name__}")


def format_priority(value: float) -> str:
    # 0.5 -> "0.5", 1.0 -> "1", 1e-05 -> "0.00001"
    return format(Decimal(repr(float(value))).normalize(), "f")


def part_file_path(work_dir: str, part_file_name: str, number: int) -> str:
    """Путь к части sitemap: первая без суффикса, далее name_<N>.ext."""
    if number < 2:
        return os.path.join(work_dir, part_file_name)
    stem, ext = os.path.splitext(part_file_name)
    return os.path.join(work_dir, f"{stem}_{number}{ext}")
