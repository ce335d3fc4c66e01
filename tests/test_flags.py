"""Tests for lbdrain.state.flags — the per-deployment flag file."""

from __future__ import annotations

import logging

import pytest

from lbdrain.config.models import DrainConfig
from lbdrain.errors import FlagNotFoundError, FlagStoreError
from lbdrain.state.flags import (
    DEREG_FLAG,
    ELB_LIST_FLAG,
    FlagStore,
    flag_file_path,
    flag_store_for,
)


# ── paths ────────────────────────────────────────────────────────────


class TestFlagFilePath:
    def test_deterministic(self, tmp_path):
        path = flag_file_path(tmp_path, "g-1", "d-2")
        assert path == tmp_path / "lbdrain_flags-g-1-d-2"
        assert path == flag_file_path(str(tmp_path), "g-1", "d-2")

    def test_store_for_config(self, tmp_path):
        cfg = DrainConfig(flag_dir=str(tmp_path), deployment_id="d-2", deployment_group_id="g-1")
        assert flag_store_for(cfg).path == tmp_path / "lbdrain_flags-g-1-d-2"

    def test_missing_ids_warns(self, tmp_path, caplog):
        cfg = DrainConfig(flag_dir=str(tmp_path))
        with caplog.at_level(logging.WARNING, logger="lbdrain.state.flags"):
            flag_store_for(cfg)
        assert "share a flag file" in caplog.text


# ── FlagStore ────────────────────────────────────────────────────────


class TestFlagStore:
    def test_set_then_get(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set(ELB_LIST_FLAG, "web-lb api-lb")
        assert store.get(ELB_LIST_FLAG) == "web-lb api-lb"

    def test_file_format(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set(DEREG_FLAG, "true")
        store.set(ELB_LIST_FLAG, "a b")
        assert store.path.read_text(encoding="utf-8") == "dereg=true\nELB_LIST=a b\n"

    def test_first_match_wins(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set("k", "first")
        store.set("k", "second")
        assert store.get("k") == "first"

    def test_value_may_contain_equals(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set("k", "a=b")
        assert store.get("k") == "a=b"

    def test_empty_value(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set(ELB_LIST_FLAG, "")
        assert store.get(ELB_LIST_FLAG) == ""

    def test_missing_file(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        assert not store.exists()
        with pytest.raises(FlagNotFoundError, match="doesn't exist"):
            store.get(DEREG_FLAG)

    def test_missing_key(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set(DEREG_FLAG, "true")
        with pytest.raises(FlagNotFoundError, match="ELB_LIST"):
            store.get(ELB_LIST_FLAG)

    def test_not_found_is_key_error(self, tmp_path):
        with pytest.raises(KeyError):
            FlagStore(tmp_path / "flags").get("x")

    def test_lines_without_separator_ignored(self, tmp_path):
        path = tmp_path / "flags"
        path.write_text("garbage\nk=v\n", encoding="utf-8")
        assert FlagStore(path).get("k") == "v"

    def test_remove_then_get(self, tmp_path):
        store = FlagStore(tmp_path / "flags")
        store.set(DEREG_FLAG, "true")
        store.remove()
        assert not store.exists()
        with pytest.raises(FlagNotFoundError):
            store.get(DEREG_FLAG)

    def test_remove_missing_only_warns(self, tmp_path, caplog):
        store = FlagStore(tmp_path / "flags")
        with caplog.at_level(logging.WARNING, logger="lbdrain.state.flags"):
            store.remove()
        assert "Failed to remove flagfile" in caplog.text

    @pytest.mark.parametrize("key, value", [("a=b", "v"), ("k\n", "v"), ("k", "v\nx=y")])
    def test_invalid_characters_rejected(self, tmp_path, key, value):
        store = FlagStore(tmp_path / "flags")
        with pytest.raises(FlagStoreError, match="invalid characters"):
            store.set(key, value)
        assert not store.exists()

    def test_unwritable_location(self, tmp_path):
        store = FlagStore(tmp_path / "no-such-dir" / "flags")
        with pytest.raises(FlagStoreError, match="Unable to write"):
            store.set(DEREG_FLAG, "true")
