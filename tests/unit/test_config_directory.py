from __future__ import annotations

import json
from pathlib import Path

import pytest

from nyc_compliance.config import SOURCES, SyncSettings, get_source_config, list_sources
from nyc_compliance.directory import JsonBuildingDirectory, StaticBuildingDirectory
from nyc_compliance.errors import ConfigError
from nyc_compliance.models import BuildingRef, CanonicalIdentifiers, SourceKind


def test_from_env_overlays_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("NYC_APP_TOKEN", "token-123")
    monkeypatch.setenv("NYC_COMPLIANCE_CACHE_DIR", str(tmp_path))
    monkeypatch.setenv("NYC_COMPLIANCE_MONTHS_BACK", "6")

    settings = SyncSettings.from_env()

    assert settings.app_token == "token-123"
    assert settings.cache_dir == tmp_path
    assert settings.months_back == 6


def test_from_env_keeps_base_values_when_unset(monkeypatch):
    for name in ("NYC_APP_TOKEN", "NYC_COMPLIANCE_CACHE_DIR", "NYC_COMPLIANCE_MONTHS_BACK"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NYC_COMPLIANCE_MONTHS_BACK", "soon")
    base = SyncSettings(months_back=3, max_retries=1)

    settings = SyncSettings.from_env(base)

    assert settings.months_back == 3
    assert settings.max_retries == 1
    assert settings.app_token == ""


def test_source_registry():
    assert set(SOURCES) == set(SourceKind)
    assert get_source_config(SourceKind.HOUSING).dataset_id == "wvxf-dwi5"
    assert SOURCES[SourceKind.HOUSING].resource_url("https://example.test/resource/") == (
        "https://example.test/resource/wvxf-dwi5.json"
    )
    batch = {s["kind"] for s in list_sources() if s["batch"]}
    assert batch == {"housing_violation", "permit", "sanitation_violation"}

    with pytest.raises(ValueError):
        get_source_config("unknown")


def test_static_directory_lookups():
    building = BuildingRef(id="1", name="Tower", address="1 Main St")
    directory = StaticBuildingDirectory([building], {"1": CanonicalIdentifiers("1000001", "1008490017")})

    assert directory.get_all_buildings() == [building]
    assert directory.get_building("1") is building
    assert directory.get_building("2") is None
    assert directory.get_identifiers("1").permit_registry_id == "1000001"
    assert directory.get_identifiers("2") is None


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_json_directory_accepts_wrapped_list(tmp_path):
    path = write_json(tmp_path / "portfolio.json", {"buildings": [
        {"id": 1, "name": "Tower", "address": "1 Main St", "lat": 40.7, "lon": -73.9, "bin": "1000001"},
        {"id": "2", "name": "Annex", "address": "2 Main St"},
    ]})

    directory = JsonBuildingDirectory(path)

    assert [b.id for b in directory.get_all_buildings()] == ["1", "2"]
    assert directory.get_building("1").lat == 40.7
    assert directory.get_identifiers("1") == CanonicalIdentifiers("1000001", "")
    assert directory.get_identifiers("2") is None


def test_json_directory_accepts_bare_list(tmp_path):
    path = write_json(tmp_path / "portfolio.json", [{"id": "9", "name": "Pier 40", "address": "353 West St"}])

    assert JsonBuildingDirectory(path).get_building("9").name == "Pier 40"


@pytest.mark.parametrize(
    "content",
    [
        "{broken",
        json.dumps({"buildings": "nope"}),
        json.dumps([{"name": "no id"}]),
        json.dumps(["just a string"]),
    ],
)
def test_json_directory_rejects_bad_input(tmp_path, content):
    path = tmp_path / "portfolio.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        JsonBuildingDirectory(path)


def test_json_directory_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        JsonBuildingDirectory(tmp_path / "missing.json")
