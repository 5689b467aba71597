import json

import pytest

from distaudit.deploy_config import PLATFORMS, generate_configs, main, norm_base_path, render_config
from distaudit.errors import UnknownPlatform

SITE = "https://jane.example.dev/"


@pytest.mark.parametrize("raw,expected", [
    (None, "/"),
    ("", "/"),
    ("/", "/"),
    ("portfolio", "/portfolio/"),
    ("/portfolio", "/portfolio/"),
    ("/a//b/", "/a/b/"),
])
def test_norm_base_path(raw, expected):
    assert norm_base_path(raw) == expected


@pytest.mark.parametrize("platform", sorted(PLATFORMS))
def test_every_platform_renders(platform):
    text = render_config(platform, SITE, "/portfolio", "public")
    assert text.endswith("\n")
    assert "/portfolio/" in text


@pytest.mark.parametrize("platform", ["vercel", "firebase"])
def test_json_platforms_are_valid_json(platform):
    data = json.loads(render_config(platform, SITE, "/"))
    assert data


def test_vercel_values():
    data = json.loads(render_config("vercel", SITE, "blog", "out"))
    assert data["outputDirectory"] == "out"
    assert data["build"]["env"] == {"SITE_URL": "https://jane.example.dev", "BASE_PATH": "/blog/"}
    assert data["headers"][1]["source"] == "/blog/assets/(.*)"


def test_firebase_public_dir():
    data = json.loads(render_config("firebase", SITE, publish_dir="/dist/"))
    assert data["hosting"]["public"] == "dist"


def test_netlify_interpolation():
    text = render_config("netlify", SITE, "/")
    assert 'publish = "dist"' in text
    assert 'SITE_URL = "https://jane.example.dev"' in text
    assert 'for = "/assets/*"' in text


def test_github_workflow_keeps_actions_expression():
    text = render_config("github", SITE, "/", "dist")
    assert "${{ steps.deployment.outputs.page_url }}" in text
    assert "dist-audit --dist dist" in text
    assert "path: './dist'" in text


def test_cloudflare_headers():
    text = render_config("cloudflare", SITE, "/")
    assert "/*.webp\n  Cache-Control: public, max-age=31536000, immutable" in text
    assert "/*.html\n  Cache-Control: public, max-age=0, must-revalidate" in text


def test_unknown_platform():
    with pytest.raises(UnknownPlatform):
        render_config("heroku", SITE)


def test_generate_writes_files_and_skips_unknown(tmp_path):
    written = generate_configs(["netlify", "heroku", "github"], tmp_path, SITE)
    assert written == [tmp_path / "netlify.toml", tmp_path / ".github" / "workflows" / "deploy.yml"]
    assert all(p.exists() for p in written)
    assert not (tmp_path / "heroku").exists()


def test_main_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("SITE_URL", SITE)
    monkeypatch.setenv("BASE_PATH", "cv")
    assert main(["--out", str(tmp_path)]) == 0
    assert sorted(p.name for p in tmp_path.rglob("*") if p.is_file()) == ["deploy.yml", "netlify.toml", "vercel.json"]
    assert json.loads((tmp_path / "vercel.json").read_text("utf-8"))["build"]["env"]["BASE_PATH"] == "/cv/"


def test_main_without_site_url(tmp_path, capsys):
    assert main(["netlify", "--out", str(tmp_path)]) == 1
    assert "Missing site URL" in capsys.readouterr().out
    assert not (tmp_path / "netlify.toml").exists()


def test_main_unknown_platform_exit_code(tmp_path):
    assert main(["cloudflare", "heroku", "--out", str(tmp_path), "--site-url", SITE]) == 1
    assert (tmp_path / "_headers").exists()


def test_netlify_escapes_toml_strings():
    tomllib = pytest.importorskip("tomllib")
    cmd = 'npm run build -- --title "My site" && echo \\done'
    data = tomllib.loads(render_config("netlify", SITE, "/blog", build_command=cmd))
    assert data["build"]["command"] == cmd
    assert data["context"]["production"]["environment"]["BASE_PATH"] == "/blog/"
    assert data["redirects"][0]["to"] == "/blog/404.html"


def test_github_workflow_installs_node_before_build():
    text = render_config("github", SITE, "/", "dist", build_command="npm run build:prod")
    steps = [line.strip() for line in text.splitlines()]
    node = steps.index("uses: actions/setup-node@v4")
    install = steps.index("run: npm ci")
    build = steps.index('run: "npm run build:prod"')
    audit = steps.index("dist-audit --dist dist")
    assert node < install < build < audit
    assert "node-version: '18'" in steps
