import pytest
from lxml import etree as ET
import sitemap_utils
from sitemap import XMLNS

NS = {"sm": XMLNS}
SITE_URL = "http://example.com"


@pytest.fixture(autouse=True)
def log_to_tmp(tmp_path, monkeypatch):
    """Redirect the shared log file into the test's temp directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setattr(sitemap_utils, "LOG_DIR", str(log_dir))
    monkeypatch.setattr(sitemap_utils, "log_file_path", str(log_dir / "test_log.txt"))
    return log_dir


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return str(path)


@pytest.fixture
def messages():
    return []


def read_locs(source):
    """Return <loc> texts of a urlset or sitemapindex document."""
    root = ET.parse(source).getroot()
    return [el.text for el in root.iter(f"{{{XMLNS}}}loc")]


def read_entries(source, tag):
    root = ET.parse(source).getroot()
    return root.findall(f"sm:{tag}", NS)
