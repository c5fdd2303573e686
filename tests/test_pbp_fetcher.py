import sys
from pathlib import Path
from types import SimpleNamespace

import pandas as pd
import pytest

from data_fetchers import PBP_COLUMNS, PbpProviderError, load_pbp_csv, load_pbp_data, save_pbp_csv
from tests.pbp_factory import catch, frame, rush


def test_load_pbp_data_requests_analysis_columns(monkeypatch):
    calls = {}

    def import_pbp_data(years, **kwargs):
        calls["years"] = years
        calls.update(kwargs)
        return frame(catch(), rush())

    monkeypatch.setitem(sys.modules, "nfl_data_py", SimpleNamespace(import_pbp_data=import_pbp_data))

    pbp = load_pbp_data(2024)

    assert len(pbp) == 2
    assert calls["years"] == [2024]
    assert calls["columns"] == PBP_COLUMNS
    assert calls["include_participation"] is False
    assert calls["downcast"] is False


def test_download_failure_is_a_provider_error(monkeypatch):
    def import_pbp_data(years, **kwargs):
        raise OSError("connection reset")

    monkeypatch.setitem(sys.modules, "nfl_data_py", SimpleNamespace(import_pbp_data=import_pbp_data))

    with pytest.raises(PbpProviderError, match="connection reset"):
        load_pbp_data(2024)


def test_missing_provider_library_is_a_provider_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "nfl_data_py", None)

    with pytest.raises(PbpProviderError, match="nfl_data_py"):
        load_pbp_data(2024)


def test_seasons_before_play_by_play_are_rejected():
    with pytest.raises(ValueError):
        load_pbp_data(1995)
    with pytest.raises(TypeError):
        load_pbp_data("2024")


def test_csv_round_trip(tmp_path: Path):
    path = tmp_path / "pbp" / "pbp_2024.csv"
    original = frame(catch("00-0036322", "J.Jefferson"), rush("00-0033280", "C.McCaffrey"))

    save_pbp_csv(original, str(path))
    loaded = load_pbp_csv(str(path))

    assert loaded["receiver_player_id"].iloc[0] == "00-0036322"
    assert loaded["rusher_player_id"].iloc[1] == "00-0033280"
    assert loaded["wp"].tolist() == [0.5, 0.5]


def test_missing_csv_raises_file_not_found(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_pbp_csv(str(tmp_path / "missing.csv"))


def test_empty_csv_is_a_provider_error(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(PbpProviderError):
        load_pbp_csv(str(path))
