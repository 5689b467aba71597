#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Rule checks run against a finished inventory.

Every check is a plain function ``(inventory, config) -> list[Violation]``.
Checks never depend on each other or on walk order: records are visited in
sorted path order so two runs over the same tree give identical output.
File contents are read from ``inventory.root``; nothing is written.
"""
from __future__ import annotations

import enum
import fnmatch
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup

from distaudit.budgets import (
    DOCUMENT_EXTENSIONS,
    KIB,
    SCRIPT_EXTENSIONS,
    STYLE_EXTENSIONS,
    AuditConfig,
)
from distaudit.inventory import ArtifactRecord, Inventory


class Severity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Violation:
    rule_id: str
    message: str
    severity: Severity
    path: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict:
        return {"ruleId": self.rule_id, "message": self.message,
                "severity": self.severity.value, "path": self.path}


def kib(n: int) -> str:
    return f"{n / KIB:.1f} KiB"


def _read_text(inventory: Inventory, rec: ArtifactRecord) -> str:
    return inventory.path_of(rec).read_text("utf-8")


def _unreadable(rec: ArtifactRecord, err: Exception, rule_id: str) -> Violation:
    return Violation("unreadable-file", f"{rec.relative_path} could not be read for {rule_id}: {err}",
                     Severity.WARNING, rec.relative_path)


# ------------------------------ BUNDLE SIZE ---------------------------------
def is_entry_script(rec: ArtifactRecord, config: AuditConfig) -> bool:
    return any(fnmatch.fnmatch(rec.name.lower(), pat.lower()) for pat in config.entry_patterns)


def check_bundle_size(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    out: List[Violation] = []
    scripts = inventory.by_extension(*SCRIPT_EXTENSIONS)
    styles = inventory.by_extension(*STYLE_EXTENSIONS)

    total_js = sum(r.size_bytes for r in scripts)
    limit = config.budget("script-initial")
    if total_js > limit:
        out.append(Violation(
            "bundle-size",
            f"Total JavaScript size ({kib(total_js)}) exceeds script-initial budget ({kib(limit)})",
            Severity.ERROR))

    limit = config.budget("script-async")
    for r in scripts:
        if is_entry_script(r, config):
            continue
        if r.size_bytes > limit:
            out.append(Violation(
                "bundle-size",
                f"JavaScript chunk {r.relative_path} ({kib(r.size_bytes)}) exceeds script-async budget ({kib(limit)})",
                Severity.ERROR, r.relative_path))

    total_css = sum(r.size_bytes for r in styles)
    limit = config.budget("style-total")
    if total_css > limit:
        out.append(Violation(
            "bundle-size",
            f"Total CSS size ({kib(total_css)}) exceeds style-total budget ({kib(limit)})",
            Severity.ERROR))
    return out


# ------------------------------ PAGE WEIGHT ---------------------------------
def check_page_weight(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    """Advisory totals: all images against ``image-per-page``, whole site against ``page-total``."""
    out: List[Violation] = []
    image_exts = config.raster_image_extensions + config.modern_image_extensions + (".svg",)
    total_img = sum(r.size_bytes for r in inventory.by_extension(*image_exts))
    limit = config.budget("image-per-page")
    if total_img > limit:
        out.append(Violation(
            "page-weight",
            f"Total image size ({kib(total_img)}) exceeds image-per-page budget ({kib(limit)})",
            Severity.WARNING))
    total = inventory.total_size
    limit = config.budget("page-total")
    if total > limit:
        out.append(Violation(
            "page-weight",
            f"Total build size ({kib(total)}) exceeds page-total budget ({kib(limit)})",
            Severity.WARNING))
    return out


# --------------------------- ASSET OPTIMIZATION -----------------------------
# .gif counts as raster but has no modern-format requirement
_NO_MODERN_REQUIRED = (".gif",)
RESOURCE_HINTS = ("preload", "prefetch", "preconnect", "modulepreload")


def _rel_values(tag) -> List[str]:
    # bs4 exposes rel as a list
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [x.lower() for x in rel]


def has_critical_css(soup: BeautifulSoup) -> bool:
    """Inlined ``<style>`` or a stylesheet named after critical CSS."""
    if soup.find("style") is not None:
        return True
    return any("critical" in (link.get("href") or "").lower() for link in soup.find_all("link"))


def has_resource_hints(soup: BeautifulSoup) -> bool:
    return any(set(_rel_values(link)) & set(RESOURCE_HINTS) for link in soup.find_all("link"))


def _image_violations(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    out: List[Violation] = []
    present = {r.relative_path for r in inventory.records}
    formats = "/".join(e.lstrip(".").upper() for e in config.modern_image_extensions)
    for r in inventory.by_extension(*config.raster_image_extensions):
        if r.extension in _NO_MODERN_REQUIRED:
            continue
        if any(fnmatch.fnmatch(r.relative_path.lower(), pat.lower()) for pat in config.ignore_images):
            continue
        if r.size_bytes <= config.image_threshold_bytes:
            continue
        prefix = f"{r.parent}/{r.stem}" if r.parent else r.stem
        if any(prefix + ext in present for ext in config.modern_image_extensions):
            continue
        out.append(Violation(
            "asset-optimization",
            f"Large image {r.relative_path} ({kib(r.size_bytes)}) has no {formats} version",
            Severity.WARNING, r.relative_path))
    return out


def _document_violations(inventory: Inventory) -> List[Violation]:
    out: List[Violation] = []
    for r in inventory.by_extension(*DOCUMENT_EXTENSIONS):
        try:
            soup = soupify(_read_text(inventory, r))
        except (OSError, UnicodeDecodeError) as e:
            out.append(_unreadable(r, e, "asset-optimization"))
            continue
        if not has_critical_css(soup):
            out.append(Violation(
                "asset-optimization", f"HTML file {r.relative_path} may be missing inlined critical CSS",
                Severity.WARNING, r.relative_path))
        if not has_resource_hints(soup):
            out.append(Violation(
                "asset-optimization",
                f"HTML file {r.relative_path} missing resource hints (preload/prefetch/preconnect)",
                Severity.WARNING, r.relative_path))
    return out


def check_asset_optimization(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    """Large raster images without a modern sibling, then documents without
    inlined critical CSS or resource hints. Warnings only."""
    return _image_violations(inventory, config) + _document_violations(inventory)


# ------------------------------ MINIFICATION --------------------------------
def looks_unminified_script(text: str, min_avg_line: int = 50, min_lines: int = 10) -> bool:
    lines = text.split("\n")
    return len(lines) > min_lines and len(text) / len(lines) < min_avg_line


def looks_unminified_style(text: str) -> bool:
    return "  " in text or "\n\n" in text


def looks_unminified_document(text: str) -> bool:
    return "  " in text and "<pre" not in text.lower()


def check_minification(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    """Flag text output that probably skipped minification.

    This is a heuristic, not a verdict. Short average line length and
    repeated whitespace are cheap signals; legitimately formatted files
    (license banners, ``<textarea>`` content, hand-written CSS) can trip them,
    so findings are warnings only.
    """
    out: List[Violation] = []
    kinds = (
        (SCRIPT_EXTENSIONS, "JavaScript",
         lambda t: looks_unminified_script(t, config.minify_min_avg_line, config.minify_min_lines)),
        (STYLE_EXTENSIONS, "CSS", looks_unminified_style),
        (DOCUMENT_EXTENSIONS, "HTML", looks_unminified_document),
    )
    for exts, label, predicate in kinds:
        for r in inventory.by_extension(*exts):
            try:
                text = _read_text(inventory, r)
            except (OSError, UnicodeDecodeError) as e:
                out.append(_unreadable(r, e, "minification"))
                continue
            if predicate(text):
                out.append(Violation(
                    "minification", f"{label} file {r.relative_path} may not be minified",
                    Severity.WARNING, r.relative_path))
    return out


# ------------------------------ SEO PRESENCE --------------------------------
def _has_title(soup: BeautifulSoup) -> bool:
    return bool(soup.title and soup.title.get_text(strip=True))


def _has_meta_name(name: str) -> Callable[[BeautifulSoup], bool]:
    def probe(soup: BeautifulSoup) -> bool:
        return any((m.get("name") or "").strip().lower() == name for m in soup.find_all("meta"))
    return probe


def _has_open_graph(soup: BeautifulSoup) -> bool:
    return any((m.get("property") or "").strip().lower().startswith("og:") for m in soup.find_all("meta"))


def _has_twitter_card(soup: BeautifulSoup) -> bool:
    return any((m.get("name") or "").strip().lower().startswith("twitter:") for m in soup.find_all("meta"))


def _has_jsonld(soup: BeautifulSoup) -> bool:
    return any((s.get("type") or "").strip().lower() == "application/ld+json" for s in soup.find_all("script"))


def _has_canonical(soup: BeautifulSoup) -> bool:
    return any("canonical" in _rel_values(link) for link in soup.find_all("link"))


SEO_PROBES: Dict[str, tuple] = {
    "title": ("title element", _has_title),
    "description": ("meta description", _has_meta_name("description")),
    "viewport": ("viewport meta tag", _has_meta_name("viewport")),
    "open-graph": ("Open Graph tags", _has_open_graph),
    "structured-data": ("structured data (JSON-LD)", _has_jsonld),
    "canonical": ("canonical link", _has_canonical),
    "twitter-card": ("Twitter Card tags", _has_twitter_card),
}


def soupify(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def missing_markers(html: str, markers) -> List[str]:
    soup = soupify(html)
    return [m for m in markers if not SEO_PROBES[m][1](soup)]


def check_seo_presence(inventory: Inventory, config: AuditConfig) -> List[Violation]:
    out: List[Violation] = []
    for r in inventory.by_extension(*DOCUMENT_EXTENSIONS):
        try:
            html = _read_text(inventory, r)
        except (OSError, UnicodeDecodeError) as e:
            out.append(_unreadable(r, e, "seo-presence"))
            continue
        for marker in missing_markers(html, config.seo_markers):
            out.append(Violation(
                "seo-presence", f"{r.relative_path} missing {SEO_PROBES[marker][0]}",
                Severity.ERROR, r.relative_path))

    if not any(inventory.has(name) for name in config.sitemap_names):
        out.append(Violation(
            "seo-presence", f"Sitemap not found (expected one of: {', '.join(config.sitemap_names)})",
            Severity.ERROR))
    if not inventory.has(config.robots_name):
        out.append(Violation("seo-presence", f"{config.robots_name} not found", Severity.ERROR))
    return out


# ------------------------------ REGISTRY ------------------------------------
@dataclass(frozen=True)
class RuleCheck:
    rule_id: str
    title: str
    func: Callable[[Inventory, AuditConfig], List[Violation]]

    def __call__(self, inventory: Inventory, config: AuditConfig) -> List[Violation]:
        return self.func(inventory, config)


CHECKS: List[RuleCheck] = [
    RuleCheck("bundle-size", "Bundle Size Validation", check_bundle_size),
    RuleCheck("page-weight", "Page Weight", check_page_weight),
    RuleCheck("asset-optimization", "Asset Optimization Validation", check_asset_optimization),
    RuleCheck("minification", "Compression and Minification Validation", check_minification),
    RuleCheck("seo-presence", "SEO and Meta Tags Validation", check_seo_presence),
]


def select_checks(rule_ids) -> List[RuleCheck]:
    """Subset of :data:`CHECKS` in registry order; unknown ids raise ``KeyError``."""
    wanted = [r.strip() for r in rule_ids]
    known = {c.rule_id: c for c in CHECKS}
    for r in wanted:
        if r not in known:
            raise KeyError(r)
    return [c for c in CHECKS if c.rule_id in wanted]
