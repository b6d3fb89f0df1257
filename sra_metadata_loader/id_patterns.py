"""Accession ID のパターン定義とバリデーション。"""

import re
from re import Pattern
from typing import Literal

StudyAccessionType = Literal["sra-study", "bioproject"]

ID_PATTERN_MAP: dict[StudyAccessionType, Pattern[str]] = {
    "sra-study": re.compile(r"^[SDE]RP\d+\Z"),
    "bioproject": re.compile(r"^PRJ[DEN][A-Z]\d+\Z"),  # ENA は study を BioProject accession でも返す
}


def is_valid_study_accession(accession_id: str) -> bool:
    """study として取り込めるパターンの accession か。"""
    return any(pattern.match(accession_id) for pattern in ID_PATTERN_MAP.values())
