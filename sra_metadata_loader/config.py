import os
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

RESULT_DIR = Path.cwd().joinpath("sra_metadata_loader_results")  # Path to dump outcomes, logs and the metadata db
DATE_FORMAT = "%Y%m%d"
LOCAL_TZ = ZoneInfo("Europe/London")
TODAY = datetime.now(LOCAL_TZ).date()
TODAY_STR = TODAY.strftime(DATE_FORMAT)

LOG_DIR_NAME = "logs"
LOG_DB_FILE_NAME = "log.duckdb"
METADATA_DB_FILE_NAME = "metadata.duckdb"
IMPORT_DIR_NAME = "import"
OUTCOMES_FILE_NAME = "outcomes.jsonl"

# Name of the option carrying the accession file path
ACCESSIONS_FILE_PATH_OPTION = "accessions.file.path"

ENA_BROWSER_API_URL = "https://www.ebi.ac.uk/ena/browser/api/xml"
ENA_FIRST_PUBLIC_TAG = "ENA-FIRST-PUBLIC"

ImportSource = Literal["api", "file"]


class Config(BaseModel):
    debug: bool = False
    result_dir: Path = RESULT_DIR
    accessions_file_path: Optional[str] = None
    import_source: ImportSource = "api"
    xml_dir: Optional[Path] = None  # used when import_source == "file"
    ena_url: str = ENA_BROWSER_API_URL
    request_timeout: float = 30.0
    parallel_num: int = 1
    retries: int = 0
    retry_wait: float = 1.0
    metadata_db_path: Optional[Path] = None  # default: {result_dir}/metadata.duckdb


default_config = Config()
ENV_PREFIX = "SRA_METADATA_LOADER"


def _env_path(name: str, default: Optional[Path]) -> Optional[Path]:
    value = os.environ.get(f"{ENV_PREFIX}_{name}")
    if value is None or value.strip() == "":
        return default
    return Path(value)


def get_config() -> Config:
    return Config(
        debug=os.environ.get(f"{ENV_PREFIX}_DEBUG", "").lower() in ("1", "true", "yes"),
        result_dir=_env_path("RESULT_DIR", default_config.result_dir),  # type: ignore[arg-type]
        accessions_file_path=os.environ.get(f"{ENV_PREFIX}_ACCESSIONS_FILE_PATH", default_config.accessions_file_path),
        import_source=os.environ.get(f"{ENV_PREFIX}_IMPORT_SOURCE", default_config.import_source),  # type: ignore[arg-type]
        xml_dir=_env_path("XML_DIR", default_config.xml_dir),
        ena_url=os.environ.get(f"{ENV_PREFIX}_ENA_URL", default_config.ena_url),
        request_timeout=float(os.environ.get(f"{ENV_PREFIX}_REQUEST_TIMEOUT", default_config.request_timeout)),
        parallel_num=int(os.environ.get(f"{ENV_PREFIX}_PARALLEL_NUM", default_config.parallel_num)),
        retries=int(os.environ.get(f"{ENV_PREFIX}_RETRIES", default_config.retries)),
        retry_wait=float(os.environ.get(f"{ENV_PREFIX}_RETRY_WAIT", default_config.retry_wait)),
        metadata_db_path=_env_path("METADATA_DB_PATH", default_config.metadata_db_path),
    )


def get_metadata_db_path(config: Config) -> Path:
    if config.metadata_db_path is not None:
        return config.metadata_db_path
    return config.result_dir.joinpath(METADATA_DB_FILE_NAME)


def get_outcomes_path(config: Config, run_id: str) -> Path:
    return config.result_dir.joinpath(IMPORT_DIR_NAME, run_id, OUTCOMES_FILE_NAME)
