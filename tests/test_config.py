import os
from pathlib import Path

import pytest

from dirserve.__main__ import parser
from dirserve.config import ServerConfig, normalizePrefix


@pytest.mark.parametrize(
    "prefix,expected",
    [
        (None, "/"),
        ("", "/"),
        ("/", "/"),
        ("files", "/files/"),
        ("/files", "/files/"),
        ("files/", "/files/"),
        ("/a/b/", "/a/b/"),
    ],
)
def test_normalize_prefix(prefix, expected):
    assert normalizePrefix(prefix) == expected


def test_make(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = ServerConfig.Make("public", prefix="docs", title="Docs")
    assert config.root == tmp_path / "public"
    assert config.root.is_absolute()
    assert config.prefix == "/docs/"
    assert config.title == "Docs"
    assert config.cacheBuster
    assert config.logOutput is None
    assert config.charsetConfidence == 50


def test_make_keeps_explicit_cache_buster(tmp_path: Path):
    assert ServerConfig.Make(tmp_path, cacheBuster="v1").cacheBuster == "v1"


def test_root_is_not_resolved(tmp_path: Path):
    (tmp_path / "real").mkdir()
    (tmp_path / "link").symlink_to(tmp_path / "real")
    config = ServerConfig.Make(tmp_path / "link")
    assert config.root == Path(os.path.abspath(tmp_path / "link"))


def test_command_line():
    options = parser().parse_args(
        [
            "-d",
            "/srv",
            "-p",
            "9000",
            "--pathprefix",
            "/files/",
            "--hide-links",
            "--markdown-before-dir",
            "--charset-confidence",
            "80",
        ]
    )
    assert options.path == "/srv"
    assert options.port == 9000
    assert options.pathprefix == "/files/"
    assert options.hide_links
    assert options.markdown_before_dir
    assert not options.disable_directory_listing
    assert options.charset_confidence == 80.0


# EOF
