import gzip
import json
import os

import pytest

import build_sitemap
from conftest import read_locs
from sitemap import InvalidArgument


@pytest.fixture
def urls_file(tmp_path):
    entries = [
        "/",
        "brandslist",
        {"loc": "/tires_catalog", "changefreq": "daily", "priority": 0.8},
        {"loc": "/oils_catalog", "lastmod": "2024-05-01T10:00:00+03:00"},
        {"loc": "/contacts", "lastmod": 1_700_000_000, "changefreq": "monthly"},
    ]
    path = tmp_path / "urls.json"
    path.write_text(json.dumps(entries, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_build_from_json(urls_file, tmp_path):
    output_dir = str(tmp_path / "sitemaps")
    entries = build_sitemap.load_entries(urls_file)

    sitemap = build_sitemap.build(
        entries,
        base_url="https://zapo.ru",
        output_dir=output_dir,
        index_file="sitemap.xml",
        gzipped=True,
        max_urls=2,
    )

    assert sitemap.written_file_count == 3
    index_locs = read_locs(os.path.join(output_dir, "sitemap.xml"))
    assert index_locs == [
        "https://zapo.ru/sitemap_part.xml.gz",
        "https://zapo.ru/sitemap_part_2.xml.gz",
        "https://zapo.ru/sitemap_part_3.xml.gz",
    ]

    locs = []
    for path in sitemap.get_sitemap_file_paths():
        with gzip.open(path + ".gz", "rb") as f:
            locs.extend(read_locs(f))
    assert locs == [
        "https://zapo.ru/",
        "https://zapo.ru/brandslist",
        "https://zapo.ru/tires_catalog",
        "https://zapo.ru/oils_catalog",
        "https://zapo.ru/contacts",
    ]


def test_build_logs_progress(tmp_path, log_to_tmp):
    build_sitemap.build(["/a"], base_url="https://zapo.ru", output_dir=str(tmp_path / "out"), gzipped=False)

    log_files = os.listdir(log_to_tmp)
    assert len(log_files) == 1
    with open(os.path.join(log_to_tmp, log_files[0]), encoding="utf-8") as f:
        content = f.read()
    assert "🏁 Индекс записан" in content


def test_build_rejects_bad_entry(tmp_path):
    with pytest.raises(InvalidArgument):
        build_sitemap.build(
            [{"loc": "/a", "changefreq": "sometimes"}],
            base_url="https://zapo.ru",
            output_dir=str(tmp_path / "out"),
            gzipped=False,
        )


def test_main_without_input_file(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(build_sitemap, "INPUT_FILE", str(tmp_path / "missing.json"))
    build_sitemap.main()
    assert "не найден" in capsys.readouterr().out


def test_main_builds_sitemap(urls_file, tmp_path, monkeypatch):
    output_dir = tmp_path / "main_out"
    monkeypatch.setattr(build_sitemap, "INPUT_FILE", urls_file)
    monkeypatch.setattr(build_sitemap, "OUTPUT_DIR", str(output_dir))

    build_sitemap.main()

    assert (output_dir / "sitemap.xml").exists()
    assert (output_dir / "sitemap_part.xml.gz").exists()
