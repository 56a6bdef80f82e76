import json
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List
from tqdm import tqdm
from sitemap import Sitemap
from sitemap_utils import log

# ---------- Константы ----------
BASE_URL = os.getenv("SITEMAP_BASE_URL", "https://zapo.ru")
INPUT_FILE = os.getenv("SITEMAP_INPUT", "urls.json")
OUTPUT_DIR = os.getenv("SITEMAP_OUTPUT_DIR", "sitemaps_output")
INDEX_FILE = os.getenv("SITEMAP_INDEX_FILE", "sitemap.xml")
USE_GZIP = os.getenv("SITEMAP_GZIP", "1") == "1"


def load_entries(path: str) -> List[Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def build(
    entries: Iterable[Any],
    base_url: str = BASE_URL,
    output_dir: str = OUTPUT_DIR,
    index_file: str = INDEX_FILE,
    gzipped: bool = USE_GZIP,
    **options,
) -> Sitemap:
    """
    Записать sitemap из списка ссылок.
    Элемент — строка-путь или словарь {"loc", "lastmod", "changefreq", "priority"}.
    """
    os.makedirs(output_dir, exist_ok=True)
    sitemap = Sitemap(base_url, output_dir, index_file, gzipped=gzipped, logger=log, **options)

    for entry in tqdm(entries, desc="🔗 Добавление ссылок"):
        if isinstance(entry, str):
            sitemap.add_url(entry)
            continue
        item: Dict[str, Any] = entry
        lastmod = item.get("lastmod")
        if isinstance(lastmod, str):
            lastmod = datetime.fromisoformat(lastmod)
        sitemap.add_url(
            item["loc"],
            lastmod,
            item.get("changefreq"),
            item.get("priority"),
        )

    sitemap.write()
    return sitemap


def main():
    if not os.path.exists(INPUT_FILE):
        log(f"❌ Файл со ссылками не найден: {INPUT_FILE}")
        return

    entries = load_entries(INPUT_FILE)
    sitemap = build(entries, BASE_URL, OUTPUT_DIR, INDEX_FILE, USE_GZIP)
    log(f"🏁 Готово: {len(entries)} ссылок, частей: {sitemap.written_file_count}")


if __name__ == "__main__":
    main()
