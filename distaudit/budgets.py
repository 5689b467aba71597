#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Budget table and audit configuration.

Defaults live in code; an optional ``audit.yml`` overrides them and
``AUDIT_BUDGET_<CATEGORY>`` environment variables override the file, e.g.::

    AUDIT_BUDGET_SCRIPT_INITIAL=120KiB python -m distaudit.audit

Sizes are bytes, or a number with a unit (B, KB/KiB, MB/MiB, GB/GiB). All
units are binary (1 KB == 1024 B), matching how the build tooling reports
bundle sizes.
"""
from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from distaudit.errors import ConfigError, UnknownBudget

KIB = 1024
MIB = 1024 * KIB

DEFAULT_BUDGETS: Dict[str, int] = {
    "script-initial": 100 * KIB,   # sum of all script files
    "script-async": 50 * KIB,      # any single non-entry chunk
    "style-total": 50 * KIB,
    "image-per-page": 500 * KIB,
    "page-total": 1 * MIB,         # whole site, every artifact class
}

SCRIPT_EXTENSIONS = (".js", ".mjs")
STYLE_EXTENSIONS = (".css",)
DOCUMENT_EXTENSIONS = (".html", ".htm")

SEO_MARKERS = ("title", "description", "viewport", "open-graph", "structured-data", "canonical")
OPTIONAL_SEO_MARKERS = ("twitter-card",)

_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmg]?)(i?)(b?)\s*$", re.I)
_UNITS = {"": 1, "k": KIB, "m": MIB, "g": 1024 * MIB}


def parse_size(value: Any) -> int:
    """``"100KiB"`` -> 102400. Plain ints pass through."""
    if isinstance(value, bool):
        raise ConfigError(f"Not a size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"Size must not be negative: {value}")
        return value
    if isinstance(value, float):
        return parse_size(str(value))
    m = _SIZE_RE.match(str(value or ""))
    if not m:
        raise ConfigError(f"Not a size: {value!r}")
    num, unit, _, _ = m.groups()
    return int(float(num) * _UNITS[unit.lower()])


def budget_for(category: str, budgets: Optional[Dict[str, int]] = None) -> int:
    table = DEFAULT_BUDGETS if budgets is None else budgets
    try:
        return table[category]
    except KeyError:
        raise UnknownBudget(category) from None


@dataclass(frozen=True)
class AuditConfig:
    budgets: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_BUDGETS))
    entry_patterns: Tuple[str, ...] = ("index*.js", "main*.js", "entry*.js", "app*.js")
    image_threshold_bytes: int = 100 * KIB
    raster_image_extensions: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif")
    modern_image_extensions: Tuple[str, ...] = (".webp", ".avif")
    ignore_images: Tuple[str, ...] = ("*favicon*",)
    seo_markers: Tuple[str, ...] = SEO_MARKERS
    sitemap_names: Tuple[str, ...] = ("sitemap.xml", "sitemap-index.xml")
    robots_name: str = "robots.txt"
    report_name: str = "build-report.json"
    minify_min_avg_line: int = 50
    minify_min_lines: int = 10

    def budget(self, category: str) -> int:
        return budget_for(category, self.budgets)

    def with_budgets(self, **overrides: int) -> "AuditConfig":
        """``cfg.with_budgets(script_initial=120 * KIB)``"""
        table = dict(self.budgets)
        for key, value in overrides.items():
            cat = key.replace("_", "-")
            budget_for(cat, table)
            table[cat] = parse_size(value)
        return replace(self, budgets=table)


# ------------------------------ YAML -----------------------------------------
def read_yaml(path: "str | Path") -> Dict[str, Any]:
    raw = Path(path).read_text("utf-8")
    # BOM / CRLF / tabs trip up the YAML parser
    if raw.startswith("\ufeff"):
        raw = raw.lstrip("\ufeff")
    raw = raw.replace("\r\n", "\n").replace("\r", "\n")
    raw = raw.replace("\t", "  ")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        print("[config] YAML parse error:", e, file=sys.stderr)
        mark = getattr(e, "problem_mark", None)
        if mark:
            err_line = mark.line + 1
            lines = raw.split("\n")
            for i in range(max(1, err_line - 3), min(err_line + 3, len(lines)) + 1):
                prefix = ">>" if i == err_line else "  "
                print(f"{prefix} {i:4d}: {lines[i-1]}", file=sys.stderr)
        raise ConfigError(f"Invalid YAML in {path}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _env(name: str, default: Any) -> Any:
    v = os.getenv(name)
    return default if v is None or str(v).strip() == "" else v


def _str_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key}: expected a list of strings")
    return tuple(value)


def _exts(value: Any, key: str) -> Tuple[str, ...]:
    return tuple("." + v.lower().lstrip(".") for v in _str_tuple(value, key))


def _section(data: Dict[str, Any], name: str, allowed: Tuple[str, ...]) -> Dict[str, Any]:
    sec = data.get(name) or {}
    if not isinstance(sec, dict):
        raise ConfigError(f"{name}: expected a mapping")
    unknown = sorted(set(sec) - set(allowed))
    if unknown:
        raise ConfigError(f"{name}: unknown keys {', '.join(unknown)}")
    return sec


_TOP_KEYS = ("budgets", "entry_patterns", "images", "seo", "minification", "report")


def report_name_of(value: Any, key: str = "report") -> str:
    """Report path relative to the dist root; absolute paths and '..' are rejected."""
    raw = str(value).strip().replace("\\", "/")
    parts = [p for p in raw.split("/") if p not in ("", ".")]
    if not parts or raw.startswith("/") or re.match(r"^[A-Za-z]:", raw) or ".." in parts:
        raise ConfigError(f"{key}: expected a path inside the build directory, got {value!r}")
    return "/".join(parts)


def config_from_dict(data: Dict[str, Any]) -> AuditConfig:
    unknown = sorted(set(data) - set(_TOP_KEYS))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    kw: Dict[str, Any] = {}

    budgets = dict(DEFAULT_BUDGETS)
    for cat, value in _section(data, "budgets", tuple(DEFAULT_BUDGETS)).items():
        if cat not in DEFAULT_BUDGETS:
            raise ConfigError(f"budgets: unknown category {cat!r}")
        budgets[cat] = parse_size(value)
    kw["budgets"] = budgets

    if "entry_patterns" in data:
        kw["entry_patterns"] = _str_tuple(data["entry_patterns"], "entry_patterns")

    images = _section(data, "images", ("threshold", "raster", "modern", "ignore"))
    if "threshold" in images:
        kw["image_threshold_bytes"] = parse_size(images["threshold"])
    if "raster" in images:
        kw["raster_image_extensions"] = _exts(images["raster"], "images.raster")
    if "modern" in images:
        kw["modern_image_extensions"] = _exts(images["modern"], "images.modern")
    if "ignore" in images:
        kw["ignore_images"] = _str_tuple(images["ignore"], "images.ignore")

    seo = _section(data, "seo", ("markers", "sitemaps", "robots"))
    if "markers" in seo:
        markers = _str_tuple(seo["markers"], "seo.markers")
        bad = [m for m in markers if m not in SEO_MARKERS + OPTIONAL_SEO_MARKERS]
        if bad:
            raise ConfigError(f"seo.markers: unknown markers {', '.join(bad)}")
        kw["seo_markers"] = markers
    if "sitemaps" in seo:
        kw["sitemap_names"] = _str_tuple(seo["sitemaps"], "seo.sitemaps")
    if "robots" in seo:
        kw["robots_name"] = str(seo["robots"])

    mini = _section(data, "minification", ("min_avg_line", "min_lines"))
    try:
        if "min_avg_line" in mini:
            kw["minify_min_avg_line"] = int(mini["min_avg_line"])
        if "min_lines" in mini:
            kw["minify_min_lines"] = int(mini["min_lines"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"minification: {e}") from e

    if "report" in data:
        kw["report_name"] = report_name_of(data["report"])

    return AuditConfig(**kw)


def apply_env_overrides(cfg: AuditConfig, environ: Optional[Dict[str, str]] = None) -> AuditConfig:
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for cat in cfg.budgets:
        name = "AUDIT_BUDGET_" + cat.upper().replace("-", "_")
        v = environ.get(name)
        if v is not None and str(v).strip() != "":
            try:
                overrides[cat.replace("-", "_")] = parse_size(v)
            except ConfigError as e:
                raise ConfigError(f"{name}: {e}") from e
    return cfg.with_budgets(**overrides) if overrides else cfg


def load_config(path: "str | Path | None" = None) -> AuditConfig:
    """Defaults <- YAML file <- environment.

    Without an explicit ``path`` the file named by ``AUDIT_CONFIG`` is used,
    then ``audit.yml`` in the working directory if present.
    """
    explicit = path is not None or _env("AUDIT_CONFIG", None) is not None
    p = Path(path or _env("AUDIT_CONFIG", "audit.yml"))
    if p.exists():
        cfg = config_from_dict(read_yaml(p))
    elif explicit:
        raise ConfigError(f"Config file not found: {p}")
    else:
        cfg = AuditConfig()
    return apply_env_overrides(cfg)


def describe(cfg: AuditConfig) -> List[str]:
    return [f"{cat}: {size / KIB:.1f} KiB" for cat, size in cfg.budgets.items()]
