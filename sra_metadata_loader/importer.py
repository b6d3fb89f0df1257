"""
accession の集合から Study を取り込む。

accession ごとに retrieval -> parsing -> conversion -> persistence の順で処理する。
1 件の失敗は ImportOutcome に記録して次の accession に進み、run 全体は止めない。
既に store にある Study (ConflictError) は failed ではなく conflict として数える。
"""
import contextvars
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from sra_metadata_loader.accessions import load_accessions
from sra_metadata_loader.config import (Config, get_metadata_db_path,
                                        get_outcomes_path)
from sra_metadata_loader.converter import study_record_to_study
from sra_metadata_loader.errors import ConflictError, RetrievalError
from sra_metadata_loader.logging.logger import (get_run_id, log_debug,
                                                log_error, log_info,
                                                to_error_info)
from sra_metadata_loader.logging.schema import DebugCategory, ErrorInfo, Stage
from sra_metadata_loader.schema import SraStudyRecord, Study
from sra_metadata_loader.sra.parser import parse_study_xml
from sra_metadata_loader.sra.retriever import RecordRetriever, get_retriever
from sra_metadata_loader.store.db import MetadataStore

OutcomeStatus = Literal["saved", "conflict", "failed"]

ParseFunc = Callable[[bytes, str], SraStudyRecord]
ConvertFunc = Callable[[SraStudyRecord], Study]


class ImportOutcome(BaseModel):
    accession: str
    status: OutcomeStatus
    stage: Optional[Stage] = Field(
        default=None,
        description="Stage where the accession stopped (None when saved)",
    )
    study: Optional[Study] = None
    error: Optional[ErrorInfo] = None


class ImportReport(BaseModel):
    outcomes: List[ImportOutcome] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "saved")

    @property
    def conflicts(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "conflict")

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "failed")

    def failures(self) -> List[ImportOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    def summary(self) -> str:
        return (
            f"attempted={self.attempted}, succeeded={self.succeeded}, "
            f"conflicts={self.conflicts}, failed={self.failed}"
        )


class ImportRunner:
    def __init__(
        self,
        retriever: RecordRetriever,
        store: MetadataStore,
        *,
        parse: ParseFunc = parse_study_xml,
        convert: ConvertFunc = study_record_to_study,
        parallel_num: int = 1,
        retries: int = 0,
        retry_wait: float = 1.0,
    ) -> None:
        self.retriever = retriever
        self.store = store
        self.parse = parse
        self.convert = convert
        self.parallel_num = parallel_num
        self.retries = max(retries, 0)
        self.retry_wait = retry_wait

    def run(self, accessions: Iterable[str]) -> ImportReport:
        """
        全 accession を処理する。

        parallel_num <= 1 なら順番に、それ以外は retrieval/parsing/conversion を
        ThreadPoolExecutor で並列に行い、persistence だけは accession 順に行う。
        別々の accession が同じ Study に解決されても、逐次でも並列でも同じ report になる。
        """
        targets = sorted(set(accessions))
        log_info(f"importing {len(targets)} accessions", count=len(targets))

        if self.parallel_num <= 1:
            outcomes = [self.import_accession(accession) for accession in targets]
        else:
            with ThreadPoolExecutor(max_workers=self.parallel_num) as executor:
                # each task gets its own copy so the logger context reaches the worker
                futures = [
                    executor.submit(contextvars.copy_context().run, self._prepare, accession)
                    for accession in targets
                ]
                prepared = [future.result() for future in futures]
            outcomes = [
                result if isinstance(result, ImportOutcome) else self._persist(accession, result)
                for accession, result in zip(targets, prepared)
            ]

        report = ImportReport(outcomes=sorted(outcomes, key=lambda o: o.accession))
        log_info(f"import finished: {report.summary()}", count=report.succeeded)

        return report

    def import_accession(self, accession: str) -> ImportOutcome:
        """1 accession を処理する。例外は送出せず、失敗は outcome として返す。"""
        result = self._prepare(accession)
        if isinstance(result, ImportOutcome):
            return result
        return self._persist(accession, result)

    def _prepare(self, accession: str) -> Union[Study, ImportOutcome]:
        """retrieval -> parsing -> conversion。失敗したら failed の outcome を返す。"""
        stage: Stage = "retrieval"
        try:
            raw = self._fetch_with_retry(accession)

            stage = "parsing"
            record = self.parse(raw, accession)

            stage = "conversion"
            return self.convert(record)
        except Exception as e:  # pylint: disable=broad-except
            return self._failed(accession, stage, e)

    def _persist(self, accession: str, study: Study) -> ImportOutcome:
        try:
            self.store.save(study)
        except ConflictError as e:
            log_info(f"study {accession} already exists, skipping", accession=accession, stage="persistence")
            return ImportOutcome(accession=accession, status="conflict", stage="persistence", error=to_error_info(e))
        except Exception as e:  # pylint: disable=broad-except
            return self._failed(accession, "persistence", e)

        log_debug(f"saved study {study.accessionVersionId}", accession=accession)
        return ImportOutcome(accession=accession, status="saved", study=study)

    def _failed(self, accession: str, stage: Stage, error: Exception) -> ImportOutcome:
        log_error(f"failed to import {accession}: {error}", error=error, accession=accession, stage=stage)
        return ImportOutcome(accession=accession, status="failed", stage=stage, error=to_error_info(error))

    def _fetch_with_retry(self, accession: str) -> bytes:
        attempt = 0
        while True:
            try:
                return self.retriever.fetch(accession)
            except RetrievalError as e:
                if attempt >= self.retries:
                    raise
                attempt += 1
                wait = self.retry_wait * attempt
                log_debug(
                    f"retrying {accession} in {wait}s (attempt {attempt}/{self.retries}): {e}",
                    accession=accession,
                    stage="retrieval",
                    debug_category=DebugCategory.RETRIEVAL_RETRY,
                )
                time.sleep(wait)


def write_outcomes(report: ImportReport, path: Path) -> Path:
    """outcome を 1 行 1 accession の JSONL で書き出す。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for outcome in report.outcomes:
            f.write(outcome.model_dump_json())
            f.write("\n")

    return path


def import_studies(
    config: Config,
    accessions: Optional[Iterable[str]] = None,
    *,
    run_id: Optional[str] = None,
) -> ImportReport:
    """
    accession ファイルを読み、retriever と store を組み立てて import を実行する。

    accession ファイルと retriever の設定エラーは retrieval を始める前に送出される。
    outcome は run ごとに import/{run_id}/outcomes.jsonl へ書く (run_id 省略時は現在の run)。
    """
    if accessions is None:
        accessions = load_accessions(config.accessions_file_path)
    targets = list(accessions)

    retriever = get_retriever(config)
    with retriever, MetadataStore(get_metadata_db_path(config)) as store:
        runner = ImportRunner(
            retriever,
            store,
            parallel_num=config.parallel_num,
            retries=config.retries,
            retry_wait=config.retry_wait,
        )
        report = runner.run(targets)

    outcomes_path = write_outcomes(report, get_outcomes_path(config, run_id or get_run_id()))
    log_info(f"wrote {report.attempted} outcomes", file=str(outcomes_path), count=report.attempted)

    return report
