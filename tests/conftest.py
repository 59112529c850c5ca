"""Shared test fixtures for all test modules."""

import pytest


@pytest.fixture
def gtd_root(tmp_path):
    """Empty GTD document tree."""
    root = tmp_path / "gtd"
    root.mkdir()
    return root


@pytest.fixture
def config_file(tmp_path, gtd_root):
    """
    Config file pointing at gtd_root, with the identity cache kept under
    tmp_path so tests never touch ~/.cache.
    """
    path = tmp_path / "config.yaml"
    path.write_text(
        f"gtd:\n"
        f"  root: {gtd_root}\n"
        f"  inbox_file: Inbox.org\n"
        f"identity:\n"
        f"  cache_file: {tmp_path / 'cache' / 'identity.json'}\n"
    )
    return path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config, cache and log files out of the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("GTDORG_CONFIG", "GTDORG_LOG_FILE", "GTDORG_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return home
