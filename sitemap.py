"""
Потоковая генерация sitemap по протоколу sitemaps.org.

    sitemap = Sitemap("https://zapo.ru", "output", "sitemap.xml")
    sitemap.add_url("/brandslist")
    sitemap.add_url("/tires_catalog", time.time(), ChangeFrequency.DAILY, 0.8)
    sitemap.write()

Ссылки копятся в памяти и периодически дописываются в текущую часть
(sitemap_part.xml, sitemap_part_2.xml, ...). При достижении лимита ссылок
часть закрывается и открывается следующая. write() сжимает части в .gz
и пишет индексный файл sitemapindex.
"""
import os
from contextlib import suppress
from datetime import date, datetime
from enum import Enum
from typing import Callable, List
from lxml import etree as ET
from tqdm import tqdm
from sitemap_utils import (
    format_priority,
    is_valid_url,
    normalize_site_url,
    part_file_path,
    w3c_datetime,
)

try:
    import gzip
except ImportError:  # интерпретатор собран без zlib
    gzip = None

# ---------- Константы ----------
XMLNS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'
MAX_URLS = 50_000
BUFFER_SIZE = 1000
GZIP_CHUNK_SIZE = 512 * 1024
PART_FILE_NAME = "sitemap_part.xml"
SHOW_PROGRESS = os.getenv("SITEMAP_PROGRESS", "1") == "1"


# ---------- Ошибки ----------
class SitemapError(Exception):
    pass


class InvalidConfiguration(SitemapError, ValueError):
    pass


class MissingDependency(InvalidConfiguration):
    pass


class InvalidArgument(SitemapError, ValueError):
    pass


class IOFailure(SitemapError, OSError):
    pass


class ChangeFrequency(str, Enum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


# ---------- Буфер XML ----------
class XmlBuffer:
    """Сериализованные фрагменты текущей части, ещё не записанные на диск."""

    def __init__(self):
        self._chunks: List[bytes] = []
        self.pending = 0
        self.size = 0

    def _append(self, data: bytes):
        self._chunks.append(data)
        self.size += len(data)

    def start_document(self, root: str):
        self._append(XML_DECLARATION)
        self._append(f'<{root} xmlns="{XMLNS}">\n'.encode("utf-8"))

    @staticmethod
    def serialize(element: ET._Element) -> bytes:
        return ET.tostring(element, encoding="utf-8", pretty_print=True)

    def write_element(self, data: bytes):
        self._append(data)
        self.pending += 1

    def end_document(self, root: str):
        self._append(f"</{root}>\n".encode("utf-8"))

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)

    def clear(self):
        self._chunks = []
        self.pending = 0
        self.size = 0


def _tag(name: str) -> str:
    return f"{{{XMLNS}}}{name}"


def _check_positive(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{name} должен быть целым числом > 0, получено: {value!r}")
    return value


def _parse_priority(priority) -> float:
    if isinstance(priority, bool):
        raise InvalidArgument(f"Некорректный priority: {priority!r}")
    try:
        value = float(priority)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Некорректный priority: {priority!r}") from None
    if not 0 <= value <= 1:
        raise InvalidArgument(f"priority вне диапазона [0, 1]: {priority!r}")
    return value


def _parse_change_frequency(change_frequency) -> ChangeFrequency:
    try:
        return ChangeFrequency(change_frequency)
    except ValueError:
        raise InvalidArgument(f"Некорректный changefreq: {change_frequency!r}") from None


class Sitemap:
    def __init__(
        self,
        site_url: str,
        work_dir: str,
        file_name: str,
        *,
        max_urls: int = MAX_URLS,
        buffer_size: int = BUFFER_SIZE,
        gzipped: bool = True,
        max_file_size: int | None = None,
        part_file_name: str = PART_FILE_NAME,
        logger: Callable[[str], None] | None = None,
    ):
        if not is_valid_url(site_url):
            raise InvalidConfiguration(f"Некорректный адрес сайта: {site_url!r}")

        self.logger = logger
        self.site_url = normalize_site_url(site_url)
        self.work_dir = work_dir
        self.file_name = file_name
        self.part_file_name = part_file_name

        self.max_urls = MAX_URLS
        self.buffer_size = BUFFER_SIZE
        self.max_file_size = None
        self.gzipped = False
        self.set_max_urls(max_urls)
        self.set_buffer_size(buffer_size)
        self.set_max_file_size(max_file_size)
        self.set_gzipped(gzipped)

        self.urls_count = 0
        self.written_file_count = 0
        self.written_file_paths: List[str] = []
        self.failed_files: List[str] = []
        self._bytes_written = 0
        self._closed = False
        self._writer = XmlBuffer()

        self._create_new_sitemap_file()

    def _log(self, message: str):
        if self.logger:
            self.logger(message)

    # ---------- Настройки ----------
    def set_max_urls(self, number: int):
        self.max_urls = _check_positive(number, "max_urls")

    def set_buffer_size(self, number: int):
        self.buffer_size = _check_positive(number, "buffer_size")

    def set_max_file_size(self, number: int | None):
        self.max_file_size = None if number is None else _check_positive(number, "max_file_size")

    def set_gzipped(self, gzipped: bool):
        if gzipped and gzip is None:
            raise MissingDependency("Модуль gzip недоступен: Python собран без zlib")
        self.gzipped = bool(gzipped)

    def is_gzipped(self) -> bool:
        return self.gzipped

    # ---------- Запросы ----------
    def get_sitemap_file_paths(self) -> List[str]:
        return list(self.written_file_paths)

    def get_sitemap_urls(self, base_url: str) -> List[str]:
        base_url = base_url.rstrip("/")
        return [f"{base_url}/{os.path.basename(path)}" for path in self.written_file_paths]

    # ---------- Работа с частями ----------
    def _current_file_path(self) -> str:
        return part_file_path(self.work_dir, self.part_file_name, self.written_file_count)

    def _create_new_sitemap_file(self):
        self.written_file_count += 1
        path = self._current_file_path()
        self.written_file_paths.append(path)

        if os.path.exists(path):
            os.remove(path)
            self._log(f"🗑️ Удалён старый файл: {path}")

        self.urls_count = 0
        self._bytes_written = 0
        self._writer.start_document("urlset")

    def _finish_file(self):
        self._writer.end_document("urlset")
        self._flush()
        self._log(f"✅ Сохранено: {self._current_file_path()} ({self.urls_count} ссылок)")

    def _flush(self):
        path = self._current_file_path()
        data = self._writer.getvalue()
        try:
            with open(path, "ab") as f:
                f.write(data)
        except OSError as e:
            raise IOFailure(f"Не удалось записать буфер в файл {path}: {e}") from e
        # буфер очищается только после успешной записи
        self._writer.clear()
        self._bytes_written += len(data)

    def _exceeds_file_size(self, entry_size: int) -> bool:
        if self.max_file_size is None or self.urls_count == 0:
            return False
        closing = len("</urlset>\n")
        total = self._bytes_written + self._writer.size + entry_size + closing
        return total > self.max_file_size

    def _build_url_element(self, location, last_modified, change_frequency, priority) -> ET._Element:
        if not isinstance(location, str) or not location:
            raise InvalidArgument(f"Некорректный location: {location!r}")

        if not location.startswith("/"):
            location = "/" + location

        url_el = ET.Element("url")
        try:
            ET.SubElement(url_el, "loc").text = self.site_url + location
        except ValueError:
            # управляющие символы недопустимы в XML
            raise InvalidArgument(f"Некорректный location: {location!r}") from None

        if last_modified is not None:
            if isinstance(last_modified, bool) or not isinstance(last_modified, (int, float, datetime, date)):
                raise InvalidArgument(f"Некорректный lastmod: {last_modified!r}")
            try:
                lastmod = w3c_datetime(last_modified)
            except (OverflowError, OSError, ValueError):
                # NaN, inf и время вне диапазона платформы
                raise InvalidArgument(f"Некорректный lastmod: {last_modified!r}") from None
            ET.SubElement(url_el, "lastmod").text = lastmod

        if change_frequency is not None:
            ET.SubElement(url_el, "changefreq").text = _parse_change_frequency(change_frequency).value

        if priority is not None:
            ET.SubElement(url_el, "priority").text = format_priority(_parse_priority(priority))

        return url_el

    def add_url(self, location: str, last_modified=None, change_frequency=None, priority=None):
        """
        Добавить ссылку в sitemap.
        Элемент полностью собирается до записи, поэтому InvalidArgument
        не оставляет в буфере обрывков.
        """
        if self._closed:
            raise RuntimeError("Sitemap уже записан, добавление ссылок невозможно")

        url_el = self._build_url_element(location, last_modified, change_frequency, priority)
        data = XmlBuffer.serialize(url_el)

        if self.urls_count >= self.max_urls or self._exceeds_file_size(len(data)):
            self._finish_file()
            self._create_new_sitemap_file()

        if self._writer.pending >= self.buffer_size:
            self._flush()

        self._writer.write_element(data)
        self.urls_count += 1

    # ---------- Сжатие ----------
    def create_gzip(self, filename: str, base_url: str) -> str | None:
        """
        Сжать файл в filename.gz блоками по GZIP_CHUNK_SIZE.
        Возвращает публичный адрес архива или None при ошибке.
        """
        if not filename or not base_url or gzip is None:
            return None

        gz_path = filename + ".gz"
        try:
            with open(filename, "rb") as f_in, gzip.open(gz_path, "wb") as f_out:
                while True:
                    chunk = f_in.read(GZIP_CHUNK_SIZE)
                    if not chunk:
                        break
                    f_out.write(chunk)
        except OSError as e:
            self._log(f"❌ Ошибка сжатия {filename}: {e}")
            with suppress(OSError):
                os.remove(gz_path)
            return None

        try:
            os.remove(filename)
        except OSError as e:
            self._log(f"⚠️ Не удалось удалить {filename}: {e}")

        self._log(f"📦 Архивирован: {gz_path}")
        return f"{base_url.rstrip('/')}/{os.path.basename(gz_path)}"

    # ---------- Индекс ----------
    def write(self) -> str:
        """Закрыть текущую часть, сжать части и записать индексный файл."""
        if self._closed:
            raise RuntimeError("Sitemap уже записан")

        self._finish_file()
        self._closed = True

        now = w3c_datetime()
        root = ET.Element(_tag("sitemapindex"), nsmap={None: XMLNS})
        paths = self.get_sitemap_file_paths()

        for path in tqdm(paths, desc="📦 Части sitemap", disable=not SHOW_PROGRESS):
            if self.gzipped:
                loc = self.create_gzip(path, self.site_url)
                if loc is None:
                    self.failed_files.append(path)
                    self._log(f"⚠️ {path} не сжат и не попадёт в индекс")
                    continue
            else:
                loc = f"{self.site_url}/{os.path.basename(path)}"

            sm = ET.SubElement(root, _tag("sitemap"))
            ET.SubElement(sm, _tag("loc")).text = loc
            ET.SubElement(sm, _tag("lastmod")).text = now

        index_path = os.path.join(self.work_dir, self.file_name)
        try:
            with open(index_path, "wb") as f:
                ET.ElementTree(root).write(
                    f,
                    encoding="utf-8",
                    xml_declaration=True,
                    pretty_print=True,
                )
        except OSError as e:
            raise IOFailure(f"Не удалось записать индекс {index_path}: {e}") from e

        self._log(f"🏁 Индекс записан: {index_path} ({len(root)} частей)")
        return index_path
