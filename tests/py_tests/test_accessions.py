"""accessions.py のテスト。"""
from pathlib import Path

import pytest

from sra_metadata_loader.accessions import load_accessions
from sra_metadata_loader.errors import (ConfigurationError,
                                        MalformedResourceError,
                                        ResourceNotFoundError)


class TestLoadAccessions:
    def test_reads_one_accession_per_line(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("ERP000860\nSRP000001\n", encoding="utf-8")
        assert load_accessions(path) == {"ERP000860", "SRP000001"}

    def test_strips_whitespace_and_skips_blank_and_comment_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("# studies\n  ERP000860  \n\n\t\nDRP000001\r\n", encoding="utf-8")
        assert load_accessions(path) == {"ERP000860", "DRP000001"}

    def test_duplicates_collapse(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("ERP000860\nERP000860\n ERP000860\n", encoding="utf-8")
        assert load_accessions(path) == {"ERP000860"}

    def test_empty_file_gives_empty_set(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("", encoding="utf-8")
        assert load_accessions(path) == set()

    def test_non_matching_accessions_are_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("not-an-accession\n", encoding="utf-8")
        assert load_accessions(path) == {"not-an-accession"}

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_text("ERP000860\n", encoding="utf-8")
        assert load_accessions(str(path)) == {"ERP000860"}

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_option(self, value: object) -> None:
        with pytest.raises(ConfigurationError, match="accessions.file.path"):
            load_accessions(value)  # type: ignore[arg-type]

    def test_nonexistent_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceNotFoundError):
            load_accessions(tmp_path / "missing.txt")

    def test_directory_is_not_a_file(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceNotFoundError):
            load_accessions(tmp_path)

    def test_binary_file_is_malformed(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_bytes(b"\xff\xfe\x00\x01\x02")
        with pytest.raises(MalformedResourceError):
            load_accessions(path)

    def test_nul_bytes_are_malformed(self, tmp_path: Path) -> None:
        path = tmp_path / "accessions.txt"
        path.write_bytes(b"ERP000860\n\x00\x00\n")
        with pytest.raises(MalformedResourceError):
            load_accessions(path)
