from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# === Metadata entities ===


class AccessionVersionId(BaseModel):
    model_config = ConfigDict(frozen=True)

    accession: str = Field(min_length=1)
    version: int = Field(gt=0)

    def __str__(self) -> str:
        return f"{self.accession}.{self.version}"


class Study(BaseModel):
    model_config = ConfigDict(frozen=True)

    accessionVersionId: AccessionVersionId
    name: str
    description: str
    center: str
    releaseDate: Optional[date] = None
    deprecated: bool = False


class Taxonomy(BaseModel):
    model_config = ConfigDict(frozen=True)

    taxonomyId: int = Field(gt=0)
    name: str


ReferenceSequenceType = Literal["ASSEMBLY", "GENE", "TRANSCRIPT", "PROTEIN"]


class ReferenceSequence(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    accessionVersionId: AccessionVersionId
    name: str
    patch: Optional[str] = None
    accessions: List[str] = Field(default_factory=list)
    type_: ReferenceSequenceType = Field(alias="type")
    taxonomy: Optional[Taxonomy] = None


# === SRA study record (parsed XML) ===


class StudyAttribute(BaseModel):
    tag: str
    value: Optional[str] = None
    units: Optional[str] = None


class XrefLink(BaseModel):
    db: Optional[str] = None
    id_: Optional[str] = Field(default=None, alias="id")
    label: Optional[str] = None


class SraStudyRecord(BaseModel):
    accession: str = Field(min_length=1)
    alias: Optional[str] = None
    center_name: Optional[str] = None
    broker_name: Optional[str] = None
    primary_id: Optional[str] = None
    secondary_ids: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    abstract: Optional[str] = None
    description: Optional[str] = None
    study_type: Optional[str] = None
    attributes: List[StudyAttribute] = Field(default_factory=list)
    xref_links: List[XrefLink] = Field(default_factory=list)

    def get_attribute(self, tag: str) -> Optional[str]:
        for attribute in self.attributes:
            if attribute.tag == tag:
                return attribute.value
        return None
