"""Tests for sra_metadata_loader.sra.parser module."""
from pathlib import Path

import pytest

from sra_metadata_loader.errors import ParseError
from sra_metadata_loader.sra.parser import (parse_attributes,
                                            parse_identifiers,
                                            parse_study_xml,
                                            parse_xref_links)


class TestParseStudyXml:
    def test_fixture_file(self, fixture_dir: Path) -> None:
        raw = fixture_dir.joinpath("study", "ERP000860.xml").read_bytes()
        record = parse_study_xml(raw, "ERP000860")

        assert record.accession == "ERP000860"
        assert record.alias == "ena-STUDY-WTSI-23-05-2011-14:21:52:107-91"
        assert record.center_name == "WTSI"
        assert record.broker_name == ""
        assert record.primary_id == "ERP000860"
        assert record.secondary_ids == ["PRJEB2494"]
        assert record.title == "Genome sequencing of Plasmodium falciparum field isolates"
        assert record.abstract is not None
        assert record.study_type == "Whole Genome Sequencing"
        assert record.get_attribute("ENA-FIRST-PUBLIC") == "2011-06-01"
        assert [link.db for link in record.xref_links] == ["ENA-SAMPLE", "PUBMED"]

    def test_accepts_str(self) -> None:
        raw = '<STUDY_SET><STUDY accession="SRP000001" center_name="NCBI"/></STUDY_SET>'
        record = parse_study_xml(raw, "SRP000001")
        assert record.accession == "SRP000001"
        assert record.title is None

    def test_bare_study_root(self) -> None:
        raw = b'<STUDY accession="DRP000001"><DESCRIPTOR><STUDY_TITLE>t</STUDY_TITLE></DESCRIPTOR></STUDY>'
        assert parse_study_xml(raw, "DRP000001").title == "t"

    def test_accession_from_primary_id(self) -> None:
        raw = b"<STUDY_SET><STUDY><IDENTIFIERS><PRIMARY_ID>ERP000001</PRIMARY_ID></IDENTIFIERS></STUDY></STUDY_SET>"
        assert parse_study_xml(raw, "PRJEB1").accession == "ERP000001"

    def test_multiple_studies_uses_first(self) -> None:
        raw = b'<STUDY_SET><STUDY accession="ERP000001"/><STUDY accession="ERP000002"/></STUDY_SET>'
        assert parse_study_xml(raw, "ERP000001").accession == "ERP000001"

    @pytest.mark.parametrize("raw", [
        b"",
        b"not xml",
        b"<STUDY_SET><STUDY>",
        b"<SAMPLE_SET><SAMPLE accession='ERS000001'/></SAMPLE_SET>",
        b"<STUDY_SET/>",
        b"<STUDY_SET><STUDY/></STUDY_SET>",
        b"<STUDY_SET><STUDY alias='no-accession'/></STUDY_SET>",
    ])
    def test_malformed(self, raw: bytes) -> None:
        with pytest.raises(ParseError) as exc_info:
            parse_study_xml(raw, "ERP000860")
        assert exc_info.value.accession == "ERP000860"
        assert str(exc_info.value).startswith("ERP000860: ")


class TestParseParts:
    def test_parse_identifiers_missing(self) -> None:
        assert parse_identifiers({}) == {"primary_id": None, "secondary_ids": []}

    def test_parse_attributes_skips_items_without_tag(self) -> None:
        study = {"STUDY_ATTRIBUTES": {"STUDY_ATTRIBUTE": [
            {"TAG": "a", "VALUE": "1"},
            {"VALUE": "2"},
            {"TAG": "b", "VALUE": "3", "UNITS": "u"},
        ]}}
        attributes = parse_attributes(study)
        assert [(a.tag, a.value, a.units) for a in attributes] == [("a", "1", None), ("b", "3", "u")]

    def test_parse_xref_links_single(self) -> None:
        study = {"STUDY_LINKS": {"STUDY_LINK": {"XREF_LINK": {"DB": "PUBMED", "ID": "1"}}}}
        links = parse_xref_links(study)
        assert len(links) == 1
        assert links[0].id_ == "1"

    def test_parse_xref_links_ignores_url_links(self) -> None:
        study = {"STUDY_LINKS": {"STUDY_LINK": {"URL_LINK": {"LABEL": "x", "URL": "http://example.com"}}}}
        assert parse_xref_links(study) == []
