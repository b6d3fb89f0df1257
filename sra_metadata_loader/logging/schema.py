from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from sra_metadata_loader.config import Config

# log_level usage:
# - DEBUG: Detailed info for debugging (pattern mismatches, retries). Not shown in stderr.
# - INFO: Progress, completion, statistics, already-imported accessions. Shown in stderr.
# - WARNING: Succeeded but incomplete (fallback values used). Shown in stderr.
# - ERROR: Failed and skipped (single accession failure). Shown in stderr.
# - CRITICAL: Fatal, processing stops (raises exception). Shown in stderr.
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# lifecycle is expressed in the extra field:
# - lifecycle="start": run started
# - lifecycle="end": run completed successfully
# - lifecycle="failed": run failed
Lifecycle = Literal["start", "end", "failed"]

# pipeline stage where an accession failed
Stage = Literal["retrieval", "parsing", "conversion", "persistence"]


class DebugCategory(str, Enum):
    """DEBUG log category for aggregation in log.duckdb."""
    # Configuration
    CONFIG = "config"

    # Accession file
    INVALID_ACCESSION = "invalid_accession"
    EMPTY_RESULT = "empty_result"

    # Retrieval
    RETRIEVAL_RETRY = "retrieval_retry"

    # Parse related
    MULTIPLE_STUDIES = "multiple_studies"


class Extra(BaseModel):
    """
    Additional structured data for log records.

    Reserved fields have predefined meanings.
    Additional arbitrary fields are allowed via extra="allow".
    """
    model_config = ConfigDict(extra="allow")

    lifecycle: Optional[Lifecycle] = Field(
        default=None,
        description="Run lifecycle stage: start, end, or failed",
    )
    file: Optional[str] = Field(
        default=None,
        description="File path being processed",
        examples=["/path/to/accessions.txt"],
    )
    accession: Optional[str] = Field(
        default=None,
        description="Accession ID being processed",
        examples=["ERP000860", "PRJEB2494"],
    )
    stage: Optional[Stage] = Field(
        default=None,
        description="Pipeline stage the record refers to",
        examples=["retrieval", "persistence"],
    )
    debug_category: Optional[DebugCategory] = Field(
        default=None,
        description="DEBUG log category for aggregation",
        examples=["invalid_accession", "retrieval_retry"],
    )
    count: Optional[int] = Field(
        default=None,
        description="Count of items (for summary logs)",
        ge=0,
    )


class LoggerContext(BaseModel):
    """Runtime context of a run, held in a ContextVar and copied into worker threads."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_name: str
    run_id: str  # {YYYYMMDD}_{run_name}_{hex4}
    run_date: date
    log_file: Path
    config: Config


class ErrorInfo(BaseModel):
    """Exception information shared by error log records and import outcomes."""

    type: str = Field(
        ...,
        description="Exception class name",
        examples=["RetrievalError", "ConflictError"],
    )
    message: str = Field(
        ...,
        description="str(e); per-accession errors are prefixed with '{accession}: '",
        examples=["ERP000860: not found in archive"],
    )
    traceback: Optional[str] = None


class LogRecord(BaseModel):
    """One line of {result_dir}/logs/{run_id}.log.jsonl (and one row of log_records)."""

    timestamp: datetime  # Europe/London
    run_date: date
    run_id: str
    run_name: str = Field(
        ...,
        description="CLI command name, or 'adhoc' outside of a run",
        examples=["import_studies", "init_metadata_db"],
    )
    source: str = Field(
        ...,
        description="Python module path where the record was emitted",
        examples=["sra_metadata_loader.importer"],
    )
    log_level: LogLevel
    message: Optional[str] = None
    error: Optional[ErrorInfo] = None
    extra: Extra = Field(default_factory=Extra)
