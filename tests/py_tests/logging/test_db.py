"""Tests for logging database operations."""
import json
from datetime import date

import duckdb
import pytest

from sra_metadata_loader.config import LOG_DB_FILE_NAME, Config
from sra_metadata_loader.logging.db import (_get_db_path,
                                            get_accession_failures,
                                            get_last_successful_run_date,
                                            get_latest_run_id, init_log_db,
                                            insert_log_records)
from sra_metadata_loader.logging.logger import log_error, log_info, run_logger


class TestInitLogDb:
    def test_init_log_db_creates_table_and_indexes(self, test_config: Config) -> None:
        init_log_db(test_config)

        db_path = _get_db_path(test_config)
        assert db_path.exists()

        with duckdb.connect(str(db_path)) as conn:
            tables = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='log_records'"
            ).fetchall()
            assert len(tables) == 1

            index_names = [r[0] for r in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index'"
            ).fetchall()]
            assert "idx_run_name" in index_names
            assert "idx_accession" in index_names

    def test_init_log_db_idempotent(self, test_config: Config) -> None:
        init_log_db(test_config)
        init_log_db(test_config)
        assert _get_db_path(test_config).exists()

    def test_get_db_path(self, test_config: Config) -> None:
        assert _get_db_path(test_config) == test_config.result_dir.joinpath(LOG_DB_FILE_NAME)


class TestInsertLogRecords:
    def test_run_logger_inserts_records(self, test_config: Config, clean_ctx: None) -> None:
        with run_logger(run_name="test_insert", config=test_config):
            pass

        with duckdb.connect(str(_get_db_path(test_config)), read_only=True) as conn:
            result = conn.execute(
                "SELECT COUNT(*) FROM log_records WHERE run_name = 'test_insert'"
            ).fetchone()
            assert result is not None
            assert result[0] == 2

    def test_accession_and_stage_columns(self, test_config: Config) -> None:
        log_dir = test_config.result_dir.joinpath("logs")
        log_dir.mkdir(parents=True, exist_ok=True)
        jsonl_path = log_dir.joinpath("test.log.jsonl")

        record = {
            "timestamp": "2026-01-13T10:30:00+00:00",
            "run_date": "2026-01-13",
            "run_id": "20260113_import_studies_a1b2",
            "run_name": "import_studies",
            "source": "sra_metadata_loader.importer",
            "log_level": "ERROR",
            "message": "failed to import ERP000860",
            "error": {"type": "ParseError", "message": "ERP000860: bad xml", "traceback": None},
            "extra": {"accession": "ERP000860", "stage": "parsing"},
        }
        with jsonl_path.open("w", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")
            f.write("\n")

        assert insert_log_records(test_config, jsonl_path) == 1

        with duckdb.connect(str(_get_db_path(test_config)), read_only=True) as conn:
            row = conn.execute(
                "SELECT accession, stage, log_level, extra FROM log_records"
            ).fetchone()

        assert row is not None
        assert row[0] == "ERP000860"
        assert row[1] == "parsing"
        assert row[2] == "ERROR"
        assert json.loads(row[3])["stage"] == "parsing"

    def test_empty_file(self, test_config: Config) -> None:
        jsonl_path = test_config.result_dir.joinpath("empty.log.jsonl")
        jsonl_path.parent.mkdir(parents=True, exist_ok=True)
        jsonl_path.write_text("", encoding="utf-8")

        assert insert_log_records(test_config, jsonl_path) == 0


class TestGetLastSuccessfulRunDate:
    def test_successful_run(self, test_config: Config, clean_ctx: None) -> None:
        with run_logger(run_name="test_success_date", config=test_config):
            pass

        result = get_last_successful_run_date(test_config, "test_success_date")
        assert isinstance(result, date)

    def test_no_db(self, test_config: Config) -> None:
        assert get_last_successful_run_date(test_config, "any_run") is None

    def test_failed_run_is_not_successful(self, test_config: Config, clean_ctx: None) -> None:
        with pytest.raises(ValueError):
            with run_logger(run_name="test_failed_date", config=test_config):
                raise ValueError("Test failure")

        assert get_last_successful_run_date(test_config, "test_failed_date") is None


class TestAccessionFailures:
    def test_failures_of_latest_run(self, test_config: Config, clean_ctx: None) -> None:
        with run_logger(run_name="import_studies", config=test_config) as ctx:
            log_info("saved", accession="ERP000001")
            log_error("failed", error=ValueError("x"), accession="SRP000002", stage="conversion")
            log_error("failed", accession="DRP000003", stage="retrieval")
            log_error("no accession")

        assert get_latest_run_id(test_config, "import_studies") == ctx.run_id

        failures = get_accession_failures(test_config, ctx.run_id)
        assert [f["accession"] for f in failures] == ["DRP000003", "SRP000002"]
        assert failures[0]["stage"] == "retrieval"
        assert failures[0]["error"] is None
        assert failures[1]["error"]["type"] == "ValueError"

    def test_no_db(self, test_config: Config) -> None:
        assert get_latest_run_id(test_config, "import_studies") is None
        assert get_accession_failures(test_config, "missing") == []
