from __future__ import annotations

import asyncio
import json
import logging
import sys

import pytest

from nyc_compliance import compliance_sync
from nyc_compliance.models import BuildingComplianceAggregate
from nyc_compliance.storage import ComplianceCacheStore
from nyc_compliance.utils.logging import LOGGER_NAME, log_banner, setup_logging
from tests.fakes import housing


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def run_main(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["nyc-compliance-sync", *argv])
    compliance_sync.main()


def test_list_sources(monkeypatch, capsys):
    run_main(monkeypatch, "--list-sources")

    out = capsys.readouterr().out
    assert "wvxf-dwi5" in out
    assert "service_complaint" in out


def test_missing_portfolio_prints_help(monkeypatch, capsys):
    run_main(monkeypatch)

    assert "usage:" in capsys.readouterr().out


def test_unreadable_portfolio_reports_config_error(monkeypatch, capsys, tmp_path):
    run_main(monkeypatch, str(tmp_path / "missing.json"), "--offline", "--output-dir", str(tmp_path))

    assert "Error: Building directory not found" in capsys.readouterr().out


def test_offline_export_uses_cached_aggregates(monkeypatch, tmp_path):
    portfolio = tmp_path / "portfolio.json"
    portfolio.write_text(json.dumps([
        {"id": "1", "name": "Tower", "address": "1 Main St"},
        {"id": "2", "name": "Annex", "address": "2 Main St"},
    ]), encoding="utf-8")
    cache_dir = tmp_path / "cache"
    store = ComplianceCacheStore(cache_dir)
    asyncio.run(store.put("1", BuildingComplianceAggregate(building_id="1", housing_violations=[housing("H1")])))
    output_dir = tmp_path / "out"

    run_main(
        monkeypatch,
        str(portfolio),
        "--offline",
        "--export",
        "--cache-dir", str(cache_dir),
        "--output-dir", str(output_dir),
    )

    summary = json.loads((output_dir / "compliance_summary.json").read_text(encoding="utf-8"))
    assert summary["synced_buildings"] == 1
    assert (output_dir / "compliance_issues.csv").exists()
    assert (output_dir / "sync.log").exists()


def test_setup_logging_writes_log_file(tmp_path):
    logger = setup_logging(tmp_path, verbose=True)
    logger.debug("debug line")

    for handler in logger.handlers:
        handler.flush()
    assert "debug line" in (tmp_path / "sync.log").read_text(encoding="utf-8")
    assert logger.handlers[0].level == logging.DEBUG


def test_setup_logging_quiets_library_loggers(tmp_path):
    setup_logging(tmp_path, quiet=("nyc_test.noisy",))
    log_banner("SWEEP", char="#", width=10)

    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.flush()
    assert logging.getLogger("nyc_test.noisy").level == logging.WARNING
    assert "##########" in (tmp_path / "sync.log").read_text(encoding="utf-8")
