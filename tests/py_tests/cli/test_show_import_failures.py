"""Tests for sra_metadata_loader.cli.show_import_failures module."""
import json
import sys
from pathlib import Path

import pytest

from sra_metadata_loader.cli.show_import_failures import main
from sra_metadata_loader.config import Config
from sra_metadata_loader.logging.logger import log_error, log_info, run_logger


class TestShowImportFailures:
    def test_latest_run(
        self,
        tmp_path: Path,
        clean_ctx: None,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = Config(result_dir=tmp_path)
        with run_logger(run_name="import_studies", config=config) as ctx:
            log_info("saved", accession="ERP000001")
            log_error("failed to import SRP000002", accession="SRP000002", stage="parsing")
        capsys.readouterr()

        monkeypatch.setattr(sys, "argv", ["show_import_failures", "--result-dir", str(tmp_path)])
        main()

        captured = capsys.readouterr()
        lines = [json.loads(line) for line in captured.out.splitlines()]
        assert lines == [{
            "accession": "SRP000002",
            "stage": "parsing",
            "message": "failed to import SRP000002",
            "error": None,
        }]
        assert ctx.run_id in captured.err

    def test_no_runs(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["show_import_failures", "--result-dir", str(tmp_path)])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
