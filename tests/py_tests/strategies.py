"""Hypothesis custom strategies for PBT."""
import string
from datetime import date
from typing import Optional

from hypothesis import strategies as st

from sra_metadata_loader.schema import SraStudyRecord, StudyAttribute


def st_sra_study_accession() -> st.SearchStrategy[str]:
    """Valid SRA/DRA/ERA study accession IDs."""
    prefix = st.sampled_from(["SRP", "DRP", "ERP"])
    digits = st.integers(min_value=1, max_value=99999999).map(lambda n: f"{n:06d}")
    return st.tuples(prefix, digits).map(lambda t: t[0] + t[1])


def st_bioproject_accession() -> st.SearchStrategy[str]:
    """Valid BioProject accession IDs."""
    prefix = st.sampled_from(["PRJD", "PRJN", "PRJE"])
    letter = st.sampled_from(list(string.ascii_uppercase))
    digits = st.integers(min_value=1, max_value=999999).map(str)
    return st.tuples(prefix, letter, digits).map(lambda t: t[0] + t[1] + t[2])


def st_study_accession() -> st.SearchStrategy[str]:
    return st.one_of(st_sra_study_accession(), st_bioproject_accession())


def st_text() -> st.SearchStrategy[str]:
    """Printable text including blank strings."""
    return st.text(alphabet=string.ascii_letters + string.digits + " -_.", max_size=40)


def st_optional_text() -> st.SearchStrategy[Optional[str]]:
    return st.one_of(st.none(), st_text())


def st_release_date() -> st.SearchStrategy[date]:
    return st.dates(min_value=date(2000, 1, 1), max_value=date(2030, 12, 31))


@st.composite
def st_sra_study_record(draw: st.DrawFn) -> SraStudyRecord:
    """SraStudyRecord with arbitrary (possibly missing) optional fields."""
    attributes = []
    if draw(st.booleans()):
        attributes.append(StudyAttribute(
            tag="ENA-FIRST-PUBLIC",
            value=draw(st_release_date()).isoformat(),
        ))

    return SraStudyRecord(
        accession=draw(st_study_accession()),
        alias=draw(st_optional_text()),
        center_name=draw(st_optional_text()),
        broker_name=draw(st_optional_text()),
        title=draw(st_optional_text()),
        abstract=draw(st_optional_text()),
        description=draw(st_optional_text()),
        attributes=attributes,
    )
