"""Show per-accession failures of an import run.

Reads log.duckdb and prints one JSON object per failed accession to stdout.
Without --run-id, the latest import_studies run is used.
"""
import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from sra_metadata_loader.cli.import_studies import RUN_NAME
from sra_metadata_loader.config import Config, get_config
from sra_metadata_loader.logging.db import (get_accession_failures,
                                            get_latest_run_id)


def parse_args(args: List[str]) -> Tuple[Config, Optional[str]]:
    parser = argparse.ArgumentParser(
        description="Show accessions that failed in an import run (JSON Lines to stdout)."
    )
    parser.add_argument(
        "--run-id",
        help="Run ID to show. Default: the latest import_studies run.",
        default=None,
    )
    parser.add_argument(
        "--result-dir",
        help="Base directory holding log.duckdb. Default: $PWD/sra_metadata_loader_results.",
        default=None,
    )

    parsed = parser.parse_args(args)

    config = get_config()
    if parsed.result_dir is not None:
        config.result_dir = Path(parsed.result_dir)

    return config, parsed.run_id


def main() -> None:
    config, run_id = parse_args(sys.argv[1:])

    if run_id is None:
        run_id = get_latest_run_id(config, RUN_NAME)
        if run_id is None:
            print(f"No {RUN_NAME} run found in {config.result_dir}.", file=sys.stderr)
            sys.exit(1)

    failures = get_accession_failures(config, run_id)
    print(f"run_id: {run_id}, failed accessions: {len(failures)}", file=sys.stderr)
    for failure in failures:
        print(json.dumps(failure, ensure_ascii=False))


if __name__ == "__main__":
    main()
