"""accession ファイルの読み込み。

1 行 1 accession。前後の空白は除去し、空行と # コメント行は無視する。
ここでのエラーは全て致命的 (取り込む accession がないため run を中断する)。
"""
from pathlib import Path
from typing import Optional, Set, Union

from sra_metadata_loader.config import ACCESSIONS_FILE_PATH_OPTION
from sra_metadata_loader.errors import (ConfigurationError,
                                        MalformedResourceError,
                                        ResourceNotFoundError)
from sra_metadata_loader.id_patterns import is_valid_study_accession
from sra_metadata_loader.logging.logger import log_debug, log_info
from sra_metadata_loader.logging.schema import DebugCategory


def load_accessions(path: Optional[Union[str, Path]]) -> Set[str]:
    if path is None or str(path).strip() == "":
        raise ConfigurationError(f"please provide {ACCESSIONS_FILE_PATH_OPTION}")

    file_path = Path(path)
    if not file_path.is_file():
        raise ResourceNotFoundError(file_path, f"provided file path is invalid/file does not exist: {file_path}")

    accessions: Set[str] = set()
    try:
        with file_path.open("r", encoding="utf-8") as f:
            for line in f:
                if "\x00" in line:
                    raise MalformedResourceError(file_path)
                line = line.strip()
                if line and not line.startswith("#"):
                    accessions.add(line)
    except UnicodeDecodeError as e:
        raise MalformedResourceError(file_path) from e
    except OSError as e:
        raise MalformedResourceError(file_path, f"failed to read {file_path}: {e}") from e

    for accession in sorted(accessions):
        if not is_valid_study_accession(accession):
            log_debug(
                f"accession '{accession}' does not look like a study accession",
                accession=accession,
                debug_category=DebugCategory.INVALID_ACCESSION,
            )

    if not accessions:
        log_debug("accession file is empty", file=str(file_path), debug_category=DebugCategory.EMPTY_RESULT)
    log_info(f"loaded {len(accessions)} accessions", file=str(file_path), count=len(accessions))

    return accessions
