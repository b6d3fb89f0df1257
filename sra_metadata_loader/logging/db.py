"""DuckDB operations for logging.

The JSONL log of each run is loaded into log_records when the run finishes.
accession and stage are lifted out of extra into their own columns so that
per-accession failures of a run can be queried directly.
"""
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import duckdb

from sra_metadata_loader.config import LOG_DB_FILE_NAME, Config


def _get_db_path(config: Config) -> Path:
    return config.result_dir.joinpath(LOG_DB_FILE_NAME)


def init_log_db(config: Config) -> None:
    """Create log_records table if not exists."""
    db_path = _get_db_path(config)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    con = duckdb.connect(str(db_path))
    try:
        con.execute("""
            CREATE TABLE IF NOT EXISTS log_records (
                timestamp TIMESTAMP,
                run_date DATE,
                run_id TEXT,
                run_name TEXT,
                source TEXT,
                log_level TEXT,
                message TEXT,
                accession TEXT,
                stage TEXT,
                error JSON,
                extra JSON
            )
        """)
        for column in ("run_name", "run_id", "log_level", "accession"):
            con.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{column} ON log_records({column})"
            )
    finally:
        con.close()


def insert_log_records(config: Config, jsonl_path: Path) -> int:
    """Insert log records from a run's JSONL file. Returns the number of records inserted."""
    db_path = _get_db_path(config)

    if not db_path.exists():
        init_log_db(config)

    records = []
    with jsonl_path.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            record = json.loads(line)
            extra = record.get("extra") or {}
            records.append((
                record.get("timestamp"),
                record.get("run_date"),
                record.get("run_id"),
                record.get("run_name"),
                record.get("source"),
                record.get("log_level"),
                record.get("message"),
                extra.get("accession"),
                extra.get("stage"),
                json.dumps(record.get("error")) if record.get("error") else None,
                json.dumps(extra) if extra else None,
            ))

    if not records:
        return 0

    con = duckdb.connect(str(db_path))
    try:
        con.executemany(
            """
            INSERT INTO log_records
            (timestamp, run_date, run_id, run_name, source, log_level,
             message, accession, stage, error, extra)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            records,
        )
    finally:
        con.close()

    return len(records)


def get_last_successful_run_date(
    config: Config,
    run_name: str,
) -> Optional[date]:
    """
    Get the last successful run date for a given run_name.

    A successful run is identified by:
    - log_level = 'INFO'
    - extra.lifecycle = 'end'
    """
    db_path = _get_db_path(config)

    if not db_path.exists():
        return None

    con = duckdb.connect(str(db_path), read_only=True)
    try:
        result = con.execute(
            """
            SELECT MAX(run_date)
            FROM log_records
            WHERE run_name = ?
              AND log_level = 'INFO'
              AND json_extract_string(extra, '$.lifecycle') = 'end'
            """,
            [run_name],
        ).fetchone()

        if result and result[0]:
            val = result[0]
            if isinstance(val, date):
                return val
            return date.fromisoformat(str(val))

        return None
    finally:
        con.close()


def get_latest_run_id(config: Config, run_name: str) -> Optional[str]:
    """run_id of the most recent run (by last timestamp) with the given run_name."""
    db_path = _get_db_path(config)

    if not db_path.exists():
        return None

    con = duckdb.connect(str(db_path), read_only=True)
    try:
        row = con.execute(
            """
            SELECT run_id
            FROM log_records
            WHERE run_name = ?
            GROUP BY run_id
            ORDER BY MAX(timestamp) DESC
            LIMIT 1
            """,
            [run_name],
        ).fetchone()
        return str(row[0]) if row else None
    finally:
        con.close()


def get_accession_failures(config: Config, run_id: str) -> List[Dict[str, Any]]:
    """
    ERROR records of a run that carry an accession, ordered by accession.

    Each item has accession, stage, message and error (type/message/traceback or None).
    """
    db_path = _get_db_path(config)

    if not db_path.exists():
        return []

    con = duckdb.connect(str(db_path), read_only=True)
    try:
        rows = con.execute(
            """
            SELECT accession, stage, message, error
            FROM log_records
            WHERE run_id = ?
              AND log_level = 'ERROR'
              AND accession IS NOT NULL
            ORDER BY accession, timestamp
            """,
            [run_id],
        ).fetchall()
    finally:
        con.close()

    return [
        {
            "accession": accession,
            "stage": stage,
            "message": message,
            "error": json.loads(error) if isinstance(error, str) else error,
        }
        for accession, stage, message, error in rows
    ]
