import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

KIB = 1024

# single line, no double spaces, every SEO marker, inlined CSS and a preload hint
GOOD_HTML = (
    '<!doctype html><html lang="en"><head><meta charset="utf-8">'
    "<title>Jane Doe - Portfolio</title>"
    '<meta name="description" content="Projects and CV of a full-stack developer">'
    '<meta name="viewport" content="width=device-width,initial-scale=1">'
    '<link rel="preload" href="/assets/index.css" as="style">'
    "<style>body{margin:0}</style>"
    '<meta property="og:title" content="Jane Doe - Portfolio">'
    '<link rel="canonical" href="https://example.dev/">'
    '<script type="application/ld+json">{"@context":"https://schema.org","@type":"Person","name":"Jane Doe"}</script>'
    "</head><body><h1>Jane Doe</h1></body></html>"
)

SITEMAP = '<?xml version="1.0" encoding="UTF-8"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'
ROBOTS = "User-agent: *\nAllow: /\nSitemap: https://example.dev/sitemap.xml"


@pytest.fixture
def make_dist(tmp_path):
    """Create a fake build output tree.

    ``files`` maps relative paths to content: ``int`` -> that many bytes of
    filler, ``bytes``/``str`` -> written as is.
    """
    def _make(files, name="dist"):
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            p = root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, int):
                p.write_bytes(b"x" * content)
            elif isinstance(content, bytes):
                p.write_bytes(content)
            else:
                p.write_text(content, encoding="utf-8")
        return root
    return _make


@pytest.fixture
def clean_site():
    """Files of a site that passes every check with the default budgets."""
    return {
        "index.html": GOOD_HTML,
        "about/index.html": GOOD_HTML,
        "assets/index.js": 20 * KIB,
        "assets/index.css": 10 * KIB,
        "sitemap.xml": SITEMAP,
        "robots.txt": ROBOTS,
    }


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in ("DIST_DIR", "AUDIT_CONFIG", "SITE_URL", "BASE_PATH",
                 "AUDIT_BUDGET_SCRIPT_INITIAL", "AUDIT_BUDGET_SCRIPT_ASYNC", "AUDIT_BUDGET_STYLE_TOTAL",
                 "AUDIT_BUDGET_IMAGE_PER_PAGE", "AUDIT_BUDGET_PAGE_TOTAL"):
        monkeypatch.delenv(name, raising=False)
