"""
accession ファイルに列挙された study を archive から取得して metadata store に保存する。

Usage:
    import_studies --accessions.file.path accessions.txt [--source api|file] [--xml-dir DIR]
"""
import argparse
import sys
from pathlib import Path
from typing import List, Tuple

from sra_metadata_loader.config import (ACCESSIONS_FILE_PATH_OPTION, Config,
                                        get_config, get_metadata_db_path)
from sra_metadata_loader.importer import import_studies
from sra_metadata_loader.logging.db import get_last_successful_run_date
from sra_metadata_loader.logging.logger import (log_debug, log_info, log_warn,
                                                run_logger)
from sra_metadata_loader.logging.schema import DebugCategory

RUN_NAME = "import_studies"


def parse_args(args: List[str]) -> Tuple[Config, bool]:
    parser = argparse.ArgumentParser(
        description="Import SRA study metadata for the accessions listed in a file."
    )
    parser.add_argument(
        f"--{ACCESSIONS_FILE_PATH_OPTION}",
        dest="accessions_file_path",
        help="Path to the accession file (one accession per line).",
        default=None,
    )
    parser.add_argument(
        "--source",
        help="Where to fetch study XML from. 'api': ENA browser API, 'file': {xml-dir}/{accession}.xml",
        choices=["api", "file"],
        default=None,
    )
    parser.add_argument(
        "--xml-dir",
        help="Directory holding {accession}.xml files (used with --source file).",
        default=None,
    )
    parser.add_argument(
        "--result-dir",
        help="Base directory for output. Default: $PWD/sra_metadata_loader_results.",
        default=None,
    )
    parser.add_argument(
        "--db-path",
        help="Path to the metadata DuckDB file. Default: {result_dir}/metadata.duckdb",
        default=None,
    )
    parser.add_argument(
        "--parallel-num",
        help="Number of accessions processed concurrently.",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--retries",
        help="Extra retrieval attempts per accession.",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--fail-on-error",
        help="Exit with status 1 when any accession failed (already imported studies do not count).",
        action="store_true",
    )
    parser.add_argument(
        "--debug",
        help="Enable debug mode.",
        action="store_true",
    )

    parsed = parser.parse_args(args)

    config = get_config()
    if parsed.accessions_file_path is not None:
        config.accessions_file_path = parsed.accessions_file_path
    if parsed.source is not None:
        config.import_source = parsed.source
    if parsed.xml_dir is not None:
        config.xml_dir = Path(parsed.xml_dir)
    if parsed.result_dir is not None:
        config.result_dir = Path(parsed.result_dir)
    if parsed.db_path is not None:
        config.metadata_db_path = Path(parsed.db_path)
    if parsed.parallel_num is not None:
        config.parallel_num = parsed.parallel_num
    if parsed.retries is not None:
        config.retries = parsed.retries
    if parsed.debug:
        config.debug = True

    return config, parsed.fail_on_error


def main() -> None:
    config, fail_on_error = parse_args(sys.argv[1:])

    with run_logger(run_name=RUN_NAME, config=config):
        log_debug(f"Config: {config.model_dump_json(indent=2)}", debug_category=DebugCategory.CONFIG)
        last_run_date = get_last_successful_run_date(config, RUN_NAME)
        if last_run_date is not None:
            log_info(f"last successful run: {last_run_date}")
        log_info(f"metadata db: {get_metadata_db_path(config)}")

        report = import_studies(config)

        for outcome in report.failures():
            log_warn(
                f"not imported: {outcome.accession} ({outcome.error.type if outcome.error else 'unknown'})",
                accession=outcome.accession,
                stage=outcome.stage,
            )

    if fail_on_error and report.failed > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
