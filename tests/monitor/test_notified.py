"""Tests for the persisted notified-set."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from wallet_relay.monitor.notified import NotifiedSet


class TestLoad:
    """Tests for NotifiedSet.load."""

    def test_loads_json_array(self, tmp_path: Path) -> None:
        path = tmp_path / "notified.json"
        path.write_text(json.dumps(["0xaaa", "0xbbb"]))

        notified = NotifiedSet.load(path)

        assert len(notified) == 2
        assert "0xaaa" in notified
        assert "0xccc" not in notified

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert len(NotifiedSet.load(tmp_path / "missing.json")) == 0

    def test_invalid_json_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "notified.json"
        path.write_text("{not json")

        assert len(NotifiedSet.load(path)) == 0

    def test_non_array_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "notified.json"
        path.write_text(json.dumps({"0xaaa": True}))

        assert len(NotifiedSet.load(path)) == 0

    def test_ignores_non_string_items(self, tmp_path: Path) -> None:
        path = tmp_path / "notified.json"
        path.write_text(json.dumps(["0xaaa", 5, None]))

        assert set(NotifiedSet.load(path)) == {"0xaaa"}


class TestMutation:
    """Tests for add_all, discard and save."""

    def test_add_all_counts_new_entries(self, tmp_path: Path) -> None:
        notified = NotifiedSet(tmp_path / "n.json", ["0xaaa"])

        assert notified.add_all(["0xaaa", "0xbbb", "0xccc"]) == 2
        assert len(notified) == 3

    def test_discard(self, tmp_path: Path) -> None:
        notified = NotifiedSet(tmp_path / "n.json", ["0xaaa"])

        assert notified.discard("0xaaa") is True
        assert notified.discard("0xaaa") is False

    def test_save_round_trips(self, tmp_path: Path) -> None:
        path = tmp_path / "n.json"
        notified = NotifiedSet(path)
        notified.add_all(["0xbbb", "0xaaa"])

        assert notified.save() is True

        assert json.loads(path.read_text()) == ["0xaaa", "0xbbb"]
        assert set(NotifiedSet.load(path)) == {"0xaaa", "0xbbb"}

    def test_save_failure_is_soft(self, tmp_path: Path) -> None:
        notified = NotifiedSet(tmp_path / "n.json", ["0xaaa"])

        with patch(
            "wallet_relay.monitor.notified.write_text_atomic",
            side_effect=OSError("read-only file system"),
        ):
            assert notified.save() is False
