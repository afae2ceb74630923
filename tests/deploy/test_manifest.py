"""Unit tests for config document and startup script rendering."""

import os

import pytest
import yaml

from autohy2.deploy.manifest import (
    ConfigDocument,
    dump_config,
    render_config,
    render_startup_script,
)
from autohy2.errors import RenderError

INSTALL_DIR = "/home/user/.autohy2"

# ── render_config ───────────────────────────────────────────────────


def test_render_config_is_deterministic(sample_params):
    assert render_config(sample_params, INSTALL_DIR) == render_config(sample_params, INSTALL_DIR)


def test_render_config_paths_are_absolute(sample_params):
    document = render_config(sample_params, INSTALL_DIR)
    for path in (document.tls.cert, document.tls.key):
        assert os.path.isabs(path)
    assert document.tls.cert == "/home/user/.autohy2/server.crt"
    assert document.tls.key == "/home/user/.autohy2/server.key"


def test_render_config_relative_dir_raises(sample_params):
    with pytest.raises(RenderError):
        render_config(sample_params, "relative/dir")


def test_render_config_to_dict_shape(sample_params):
    d = render_config(sample_params, INSTALL_DIR).to_dict()
    assert d == {
        "listen": ":443",
        "tls": {"cert": "/home/user/.autohy2/server.crt", "key": "/home/user/.autohy2/server.key"},
        "auth": {"type": "password", "password": "abc123"},
        "congestion_control": {"type": "bbr"},
        "bandwidth": {"up": "100 mbps", "down": "200 mbps"},
        "masquerade": {"type": "proxy", "proxy": {"url": "https://bing.com", "rewriteHost": True}},
    }


def test_render_config_policy_constants_ignore_input(sample_params):
    document = render_config(sample_params, INSTALL_DIR)
    assert isinstance(document, ConfigDocument)
    assert document.masquerade.url == "https://bing.com"
    assert sample_params.fake_domain not in document.masquerade.url


# ── dump_config ─────────────────────────────────────────────────────


def test_dump_config_parses_back(sample_params):
    document = render_config(sample_params, INSTALL_DIR)
    text = dump_config(document)
    assert not text.startswith("---")
    assert yaml.safe_load(text) == document.to_dict()


def test_dump_config_keeps_key_order(sample_params):
    text = dump_config(render_config(sample_params, INSTALL_DIR))
    top_level = [line.split(":")[0] for line in text.splitlines() if line and not line.startswith(" ")]
    assert top_level == ["listen", "tls", "auth", "congestion_control", "bandwidth", "masquerade"]


# ── render_startup_script ───────────────────────────────────────────


def test_startup_script_is_byte_identical():
    assert render_startup_script(INSTALL_DIR) == render_startup_script(INSTALL_DIR)


def test_startup_script_contents():
    script = render_startup_script(INSTALL_DIR)
    assert script.startswith("#!/bin/sh\n")
    assert f"cd {INSTALL_DIR}" in script
    assert "setsid nohup ./hysteria server -c config.yaml > hy2.log 2>&1" in script
    assert "echo $! > hy2pid.log" in script


def test_startup_script_quotes_directory():
    script = render_startup_script("/opt/my dir")
    assert "cd '/opt/my dir'" in script


def test_startup_script_relative_dir_raises():
    with pytest.raises(RenderError):
        render_startup_script("relative")
