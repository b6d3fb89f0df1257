"""SraStudyRecord から Study への変換。

I/O も副作用もない純粋な関数。同じ record からは常に同じ Study を返す。
"""
from datetime import date, datetime
from typing import Optional

from sra_metadata_loader.config import ENA_FIRST_PUBLIC_TAG
from sra_metadata_loader.errors import ConversionError
from sra_metadata_loader.schema import AccessionVersionId, SraStudyRecord, Study

# archive から取り込む study は常に version 1
IMPORTED_STUDY_VERSION = 1


def _first_non_blank(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value is not None and value.strip():
            return value.strip()
    return None


def parse_release_date(record: SraStudyRecord) -> Optional[date]:
    """ENA-FIRST-PUBLIC 属性 (YYYY-MM-DD) を date にする。属性がなければ None。"""
    value = _first_non_blank(record.get_attribute(ENA_FIRST_PUBLIC_TAG))
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ConversionError(record.accession, cause=e, message=f"invalid {ENA_FIRST_PUBLIC_TAG}: {value}") from e


def study_record_to_study(record: SraStudyRecord) -> Study:
    name = _first_non_blank(record.title, record.alias)
    if name is None:
        raise ConversionError(record.accession, message="study has neither STUDY_TITLE nor alias")

    center = _first_non_blank(record.center_name, record.broker_name)
    if center is None:
        raise ConversionError(record.accession, message="study has neither center_name nor broker_name")

    return Study(
        accessionVersionId=AccessionVersionId(
            accession=record.accession,
            version=IMPORTED_STUDY_VERSION,
        ),
        name=name,
        description=_first_non_blank(record.abstract, record.description) or "",
        center=center,
        releaseDate=parse_release_date(record),
        deprecated=False,
    )
