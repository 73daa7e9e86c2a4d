from __future__ import annotations

import importlib
from pathlib import Path

import pytest

from lw_core.config import CollectionConfig


def test_invalid_env_does_not_crash(monkeypatch):
    monkeypatch.setenv("LW_INITIAL_SIZE", "not-a-number")
    monkeypatch.setenv("LW_PAGE_SIZE", "7")
    monkeypatch.setenv("LW_ASCENDING", "no")

    import lw_sim.settings as settings_mod

    importlib.reload(settings_mod)
    try:
        assert settings_mod.INITIAL_SIZE == 20
        assert settings_mod.PAGE_SIZE == 7
        assert settings_mod.ASCENDING is False
        assert settings_mod.FIXED_ITEM_POSITIONS is False
    finally:
        monkeypatch.undo()
        importlib.reload(settings_mod)


def test_load_config_reads_collection_section(tmp_path: Path):
    import lw_sim.settings as settings_mod

    path = tmp_path / "config.yaml"
    path.write_text(
        "log_level: DEBUG\n"
        "collection:\n"
        "  initial_size: 5\n"
        "  page_size: 2\n"
        "  ascending: false\n"
        "  fixed_item_positions: true\n"
    )

    raw = settings_mod.load_config(path)
    config = settings_mod.collection_config(raw)

    assert raw["log_level"] == "DEBUG"
    assert config == CollectionConfig(initial_size=5, page_size=2, ascending=False, fixed_item_positions=True)


def test_collection_config_falls_back_to_defaults():
    import lw_sim.settings as settings_mod

    config = settings_mod.collection_config({"initial_size": 3})

    assert config.initial_size == 3
    assert config.page_size == settings_mod.PAGE_SIZE
    assert config.ascending == settings_mod.ASCENDING


def test_config_path_env_used_when_no_path(tmp_path: Path, monkeypatch):
    import lw_sim.settings as settings_mod

    path = tmp_path / "env.yaml"
    path.write_text("collection:\n  initial_size: 9\n  page_size: 1\n")
    monkeypatch.setenv("CONFIG_PATH", str(path))

    config = settings_mod.collection_config(settings_mod.load_config())

    assert config.initial_size == 9


def test_empty_config_file(tmp_path: Path):
    import lw_sim.settings as settings_mod

    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert settings_mod.load_config(path) == {}


def test_non_mapping_config_rejected(tmp_path: Path):
    import lw_sim.settings as settings_mod

    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n")

    with pytest.raises(ValueError):
        settings_mod.load_config(path)


def test_invalid_sizes_rejected():
    with pytest.raises(ValueError):
        CollectionConfig(initial_size=-1, page_size=5)
    with pytest.raises(ValueError):
        CollectionConfig(initial_size=1, page_size=0)


def test_config_log_level_falls_back_to_env_default():
    import lw_sim.settings as settings_mod

    assert settings_mod.config_log_level({"log_level": "DEBUG"}) == "DEBUG"
    assert settings_mod.config_log_level({"collection": {}}) == settings_mod.LOG_LEVEL
    assert settings_mod.config_log_level(None) == settings_mod.LOG_LEVEL
