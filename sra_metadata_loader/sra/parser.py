"""SRA study XML のパース。

ENA browser API の XML (STUDY_SET/STUDY) を SraStudyRecord に変換する。
accession はエラーの帰属 (どの accession で失敗したか) のためだけに使い、
XML 内の STUDY の検索には使わない。
"""
from typing import Any, Dict, List, Optional, Union

from lxml import etree
from pydantic import ValidationError as PydanticValidationError

from sra_metadata_loader.errors import ParseError
from sra_metadata_loader.logging.logger import log_debug
from sra_metadata_loader.logging.schema import DebugCategory
from sra_metadata_loader.schema import (SraStudyRecord, StudyAttribute,
                                        XrefLink)
from sra_metadata_loader.xml_utils import as_list, get_text, parse_xml


def _get_study_entries(parsed: Dict[str, Any], accession: str) -> List[Dict[str, Any]]:
    root_tag, root = next(iter(parsed.items()))
    if root_tag == "STUDY_SET":
        entries = as_list(root.get("STUDY") if isinstance(root, dict) else None)
    elif root_tag == "STUDY":
        entries = [root]
    else:
        raise ParseError(accession, message=f"unexpected root element: {root_tag}")

    studies = [entry for entry in entries if isinstance(entry, dict)]
    if not studies:
        raise ParseError(accession, message="no STUDY element in document")
    return studies


def parse_identifiers(study: Dict[str, Any]) -> Dict[str, Any]:
    identifiers = study.get("IDENTIFIERS")
    if not isinstance(identifiers, dict):
        return {"primary_id": None, "secondary_ids": []}

    secondary_ids: List[str] = []
    for item in as_list(identifiers.get("SECONDARY_ID")):
        value = item.get("content") if isinstance(item, dict) else item
        if value:
            secondary_ids.append(str(value))

    return {
        "primary_id": get_text(identifiers, "PRIMARY_ID"),
        "secondary_ids": secondary_ids,
    }


def parse_study_type(descriptor: Dict[str, Any]) -> Optional[str]:
    study_type = descriptor.get("STUDY_TYPE")
    if isinstance(study_type, dict):
        return study_type.get("new_study_type") or study_type.get("existing_study_type")
    return None


def parse_attributes(study: Dict[str, Any]) -> List[StudyAttribute]:
    attributes_obj = study.get("STUDY_ATTRIBUTES")
    if not isinstance(attributes_obj, dict):
        return []

    attributes: List[StudyAttribute] = []
    for item in as_list(attributes_obj.get("STUDY_ATTRIBUTE")):
        tag = get_text(item, "TAG")
        if tag is None:
            continue
        attributes.append(StudyAttribute(
            tag=tag,
            value=get_text(item, "VALUE"),
            units=get_text(item, "UNITS"),
        ))
    return attributes


def parse_xref_links(study: Dict[str, Any]) -> List[XrefLink]:
    links_obj = study.get("STUDY_LINKS")
    if not isinstance(links_obj, dict):
        return []

    links: List[XrefLink] = []
    for item in as_list(links_obj.get("STUDY_LINK")):
        xref = item.get("XREF_LINK") if isinstance(item, dict) else None
        if not isinstance(xref, dict):
            continue
        links.append(XrefLink(
            db=get_text(xref, "DB"),
            id=get_text(xref, "ID"),
            label=get_text(xref, "LABEL"),
        ))
    return links


def study_entry_to_record(study: Dict[str, Any], accession: str) -> SraStudyRecord:
    """STUDY 要素の dict を SraStudyRecord に変換する。"""
    descriptor = study.get("DESCRIPTOR")
    if not isinstance(descriptor, dict):
        descriptor = {}
    identifiers = parse_identifiers(study)

    study_accession = study.get("accession") or identifiers["primary_id"]
    if not study_accession:
        raise ParseError(accession, message="STUDY has neither accession attribute nor PRIMARY_ID")

    try:
        return SraStudyRecord(
            accession=study_accession,
            alias=study.get("alias"),
            center_name=study.get("center_name"),
            broker_name=study.get("broker_name"),
            primary_id=identifiers["primary_id"],
            secondary_ids=identifiers["secondary_ids"],
            title=get_text(descriptor, "STUDY_TITLE"),
            abstract=get_text(descriptor, "STUDY_ABSTRACT"),
            description=get_text(descriptor, "STUDY_DESCRIPTION"),
            study_type=parse_study_type(descriptor),
            attributes=parse_attributes(study),
            xref_links=parse_xref_links(study),
        )
    except PydanticValidationError as e:
        raise ParseError(accession, cause=e) from e


def parse_study_xml(raw: Union[bytes, str], accession: str) -> SraStudyRecord:
    """study XML をパースする。STUDY_SET に複数の STUDY がある場合は先頭を使う。"""
    xml_bytes = raw.encode("utf-8") if isinstance(raw, str) else raw
    try:
        parsed = parse_xml(xml_bytes)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError(accession, cause=e) from e

    studies = _get_study_entries(parsed, accession)
    if len(studies) > 1:
        log_debug(
            f"document contains {len(studies)} studies, using the first one",
            accession=accession,
            debug_category=DebugCategory.MULTIPLE_STUDIES,
        )

    return study_entry_to_record(studies[0], accession)
