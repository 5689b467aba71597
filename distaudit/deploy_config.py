#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Deployment configs for static hosts.

Renders fixed templates (templates/deploy/<platform>.j2) with the site URL,
base path and publish directory and writes them where each host expects them.
There is no logic beyond interpolation.

USAGE:
  python -m distaudit.deploy_config netlify vercel --site-url https://example.dev
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from distaudit import console
from distaudit.errors import UnknownPlatform

log = console.get_logger("deploy")

TEMPLATES = Path(__file__).resolve().parent / "templates" / "deploy"

# platform -> output path relative to the project root
PLATFORMS: Dict[str, str] = {
    "netlify": "netlify.toml",
    "vercel": "vercel.json",
    "github": ".github/workflows/deploy.yml",
    "cloudflare": "_headers",
    "firebase": "firebase.json",
}
DEFAULT_PLATFORMS = ("netlify", "vercel", "github")

CSP = ("default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
       "img-src 'self' data: https:; font-src 'self' data:; connect-src 'self';")

env = Environment(
    loader=FileSystemLoader(TEMPLATES),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)
env.filters["tojson"] = lambda obj: json.dumps(obj, ensure_ascii=False)


def _env(name: str, default: Any) -> Any:
    v = os.getenv(name)
    return default if v is None or str(v).strip() == "" else v


def norm_base_path(base_path: Optional[str]) -> str:
    """'' / None -> '/', 'blog' -> '/blog/', '/blog' -> '/blog/'"""
    parts = [p for p in (base_path or "").strip().split("/") if p]
    return "/" + "".join(p + "/" for p in parts)


def render_config(platform: str, site_url: str, base_path: str = "/",
                  publish_dir: str = "dist", build_command: str = "npm run build") -> str:
    if platform not in PLATFORMS:
        raise UnknownPlatform(platform)
    ctx = {
        "site_url": (site_url or "").rstrip("/"),
        "base_path": norm_base_path(base_path),
        "publish_dir": publish_dir.strip("/") or ".",
        "build_command": build_command,
        "csp": CSP,
        "cache_html": "public, max-age=0, must-revalidate",
        "cache_immutable": "public, max-age=31536000, immutable",
        "immutable_extensions": ["js", "css", "svg", "png", "jpg", "webp", "avif"],
    }
    return env.get_template(f"{platform}.j2").render(**ctx)


def generate_configs(platforms: Iterable[str], out_dir: "str | Path", site_url: str,
                     base_path: str = "/", publish_dir: str = "dist",
                     build_command: str = "npm run build") -> List[Path]:
    """Write one file per known platform; unknown names are logged and skipped."""
    out_dir = Path(out_dir)
    written: List[Path] = []
    for platform in platforms:
        try:
            text = render_config(platform, site_url, base_path, publish_dir, build_command)
        except UnknownPlatform as e:
            log.warning("%s (known: %s)", e, ", ".join(PLATFORMS))
            continue
        dst = out_dir / PLATFORMS[platform]
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(text, "utf-8")
        console.success(log, "Generated %s configuration: %s", platform, PLATFORMS[platform])
        written.append(dst)
    return written


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="dist-deploy-config",
                                description="Generate static-host deployment configs.")
    p.add_argument("platforms", nargs="*", default=list(DEFAULT_PLATFORMS),
                   help=f"Any of: {', '.join(PLATFORMS)} (default: {' '.join(DEFAULT_PLATFORMS)})")
    p.add_argument("--out", type=Path, default=Path("."), help="Project root to write into")
    p.add_argument("--site-url", default=None, help="Public site URL (default: $SITE_URL)")
    p.add_argument("--base-path", default=None, help="URL base path (default: $BASE_PATH or /)")
    p.add_argument("--publish-dir", default="dist", help="Build output directory (default: dist)")
    p.add_argument("--build-command", default="npm run build", help="Site build command")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    console.setup_logging(0)
    site_url = args.site_url or _env("SITE_URL", "")
    if not site_url:
        log.error("Missing site URL: pass --site-url or set SITE_URL")
        return 1
    base_path = args.base_path if args.base_path is not None else _env("BASE_PATH", "/")
    written = generate_configs(args.platforms, args.out, site_url, base_path,
                               args.publish_dir, args.build_command)
    return 0 if len(written) == len(args.platforms) else 1


if __name__ == "__main__":
    sys.exit(main())
