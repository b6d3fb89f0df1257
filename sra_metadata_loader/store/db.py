"""
DuckDB を使った metadata store。

- natural key: Study / ReferenceSequence は (accession, version)、Taxonomy は taxonomy_id
- 書き込みは全て store 全体の lock と transaction の中で行い、key の存在確認と insert を不可分にする
- 書き込み前に ValidatorRegistry の hook を呼び、失敗したら何も書かない
"""
import json
import threading
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Any, Generator, Optional, Tuple, Type, Union

import duckdb
from duckdb import DuckDBPyConnection

from sra_metadata_loader.config import Config, get_metadata_db_path
from sra_metadata_loader.errors import (ConflictError, EntityNotFoundError,
                                        PersistenceError, ValidationError)
from sra_metadata_loader.schema import (AccessionVersionId, ReferenceSequence,
                                        Study, Taxonomy)
from sra_metadata_loader.store.validation import (ValidatorRegistry,
                                                  default_registry)

Entity = Union[Study, ReferenceSequence, Taxonomy]
EntityKey = Union[AccessionVersionId, int]

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS study (
        accession    TEXT NOT NULL,
        version      INTEGER NOT NULL CHECK (version > 0),
        name         TEXT NOT NULL,
        description  TEXT NOT NULL,
        center       TEXT NOT NULL,
        release_date DATE,
        deprecated   BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (accession, version)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS taxonomy (
        taxonomy_id BIGINT PRIMARY KEY,
        name        TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS reference_sequence (
        accession   TEXT NOT NULL,
        version     INTEGER NOT NULL CHECK (version > 0),
        name        TEXT NOT NULL,
        patch       TEXT,
        type        TEXT NOT NULL,
        accessions  TEXT NOT NULL,
        taxonomy_id BIGINT NOT NULL,
        PRIMARY KEY (accession, version)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_study_release_date ON study (release_date);",
]


def init_schema(conn: DuckDBPyConnection) -> None:
    for sql in SCHEMA_SQL:
        conn.execute(sql)


def init_metadata_db(config: Config) -> Path:
    """
    Create the metadata database (tables only). Existing data is kept.
    """
    db_path = get_metadata_db_path(config)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = duckdb.connect(str(db_path))
    try:
        init_schema(conn)
    finally:
        conn.close()

    return db_path


def natural_key(entity: Entity) -> EntityKey:
    if isinstance(entity, (Study, ReferenceSequence)):
        return entity.accessionVersionId
    if isinstance(entity, Taxonomy):
        return entity.taxonomyId
    raise TypeError(f"unsupported entity type: {type(entity).__name__}")


def _key_params(key: EntityKey) -> Tuple[Any, ...]:
    if isinstance(key, AccessionVersionId):
        return (key.accession, key.version)
    return (key,)


class MetadataStore:
    def __init__(
        self,
        db_path: Union[str, Path] = ":memory:",
        validators: Optional[ValidatorRegistry] = None,
    ) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.validators = validators if validators is not None else default_registry()
        self._lock = threading.Lock()
        self._conn = duckdb.connect(self.db_path)
        init_schema(self._conn)

    # === Lifecycle ===

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "MetadataStore":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Generator[DuckDBPyConnection, None, None]:
        with self._lock:
            self._conn.begin()
            try:
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._rollback()
                raise

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except duckdb.TransactionException:
            # a failed commit has already aborted the transaction
            pass

    # === Write operations ===

    def save(self, entity: Entity) -> None:
        """
        Create a new entity.

        Raises:
            ValidationError: a validation hook rejected the entity, or its taxonomy id is
                already stored under another name (nothing is written).
            ConflictError: the natural key already exists.
            PersistenceError: any other storage failure.
        """
        key = natural_key(entity)
        kind = type(entity).__name__
        self.validators.validate(entity)

        try:
            with self._transaction() as conn:
                if self._exists(conn, type(entity), key):
                    raise ConflictError(kind, key)
                self._insert(conn, entity)
        except duckdb.ConstraintException as e:
            # another connection to the same file may win the race on the primary key
            if "duplicate key" in str(e).lower():
                raise ConflictError(kind, key) from e
            raise PersistenceError(f"failed to save {kind} {key}: {e}") from e
        except duckdb.Error as e:
            raise PersistenceError(f"failed to save {kind} {key}: {e}") from e

    def update(self, entity: Entity) -> None:
        """
        Replace an existing entity (same natural key).

        Raises:
            ValidationError: a validation hook rejected the entity (nothing is written).
            EntityNotFoundError: the natural key does not exist.
            PersistenceError: any other storage failure.
        """
        key = natural_key(entity)
        kind = type(entity).__name__
        self.validators.validate(entity)

        try:
            with self._transaction() as conn:
                if not self._exists(conn, type(entity), key):
                    raise EntityNotFoundError(kind, key)
                self._update(conn, entity)
        except duckdb.Error as e:
            raise PersistenceError(f"failed to update {kind} {key}: {e}") from e

    def link_taxonomy(self, key: AccessionVersionId, taxonomy: Optional[Taxonomy]) -> ReferenceSequence:
        """ReferenceSequence に Taxonomy を紐づける (既存の紐づけは置き換える)。None は validation hook が拒否する。"""
        return self._relink(key, taxonomy)

    def unlink_taxonomy(self, key: AccessionVersionId) -> ReferenceSequence:
        """ReferenceSequence から Taxonomy の紐づけを外す。Taxonomy は必須なので validation hook が拒否する。"""
        return self._relink(key, None)

    def _relink(self, key: AccessionVersionId, taxonomy: Optional[Taxonomy]) -> ReferenceSequence:
        try:
            with self._transaction() as conn:
                current = self._find_reference_sequence(conn, key)
                if current is None:
                    raise EntityNotFoundError("ReferenceSequence", key)
                candidate = current.model_copy(update={"taxonomy": taxonomy})
                self.validators.validate(candidate)
                self._update(conn, candidate)
        except duckdb.Error as e:
            raise PersistenceError(f"failed to update taxonomy link of ReferenceSequence {key}: {e}") from e

        return candidate

    # === Read operations ===

    def find_study(self, key: AccessionVersionId) -> Optional[Study]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT accession, version, name, description, center, release_date, deprecated
                FROM study
                WHERE accession = ? AND version = ?
                """,
                _key_params(key),
            ).fetchone()
        if row is None:
            return None
        return Study(
            accessionVersionId=AccessionVersionId(accession=row[0], version=row[1]),
            name=row[2],
            description=row[3],
            center=row[4],
            releaseDate=row[5],
            deprecated=row[6],
        )

    def find_reference_sequence(self, key: AccessionVersionId) -> Optional[ReferenceSequence]:
        with self._lock:
            return self._find_reference_sequence(self._conn, key)

    def find_taxonomy(self, taxonomy_id: int) -> Optional[Taxonomy]:
        with self._lock:
            row = self._conn.execute(
                "SELECT taxonomy_id, name FROM taxonomy WHERE taxonomy_id = ?",
                (taxonomy_id,),
            ).fetchone()
        if row is None:
            return None
        return Taxonomy(taxonomyId=row[0], name=row[1])

    def count(self, kind: Type[Entity]) -> int:
        table = _table_name(kind)
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return int(row[0]) if row else 0

    # === Internals (caller holds the lock) ===

    def _exists(self, conn: DuckDBPyConnection, kind: Type[Entity], key: EntityKey) -> bool:
        table = _table_name(kind)
        if kind is Taxonomy:
            where = "taxonomy_id = ?"
        else:
            where = "accession = ? AND version = ?"
        row = conn.execute(f"SELECT 1 FROM {table} WHERE {where}", _key_params(key)).fetchone()
        return row is not None

    def _find_reference_sequence(
        self, conn: DuckDBPyConnection, key: AccessionVersionId,
    ) -> Optional[ReferenceSequence]:
        row = conn.execute(
            """
            SELECT r.accession, r.version, r.name, r.patch, r.type, r.accessions, t.taxonomy_id, t.name
            FROM reference_sequence r
            LEFT JOIN taxonomy t ON r.taxonomy_id = t.taxonomy_id
            WHERE r.accession = ? AND r.version = ?
            """,
            _key_params(key),
        ).fetchone()
        if row is None:
            return None
        return ReferenceSequence(
            accessionVersionId=AccessionVersionId(accession=row[0], version=row[1]),
            name=row[2],
            patch=row[3],
            type=row[4],
            accessions=json.loads(row[5]),
            taxonomy=Taxonomy(taxonomyId=row[6], name=row[7]) if row[6] is not None else None,
        )

    def _insert(self, conn: DuckDBPyConnection, entity: Entity) -> None:
        if isinstance(entity, Study):
            conn.execute(
                "INSERT INTO study VALUES (?, ?, ?, ?, ?, ?, ?)",
                _study_row(entity),
            )
        elif isinstance(entity, ReferenceSequence):
            self._insert_taxonomy_reference(conn, entity)
            conn.execute(
                "INSERT INTO reference_sequence VALUES (?, ?, ?, ?, ?, ?, ?)",
                _reference_sequence_row(entity),
            )
        else:
            conn.execute(
                "INSERT INTO taxonomy VALUES (?, ?)",
                (entity.taxonomyId, entity.name),
            )

    def _update(self, conn: DuckDBPyConnection, entity: Entity) -> None:
        if isinstance(entity, Study):
            accession, version, *values = _study_row(entity)
            conn.execute(
                """
                UPDATE study
                SET name = ?, description = ?, center = ?, release_date = ?, deprecated = ?
                WHERE accession = ? AND version = ?
                """,
                (*values, accession, version),
            )
        elif isinstance(entity, ReferenceSequence):
            self._insert_taxonomy_reference(conn, entity)
            accession, version, *values = _reference_sequence_row(entity)
            conn.execute(
                """
                UPDATE reference_sequence
                SET name = ?, patch = ?, type = ?, accessions = ?, taxonomy_id = ?
                WHERE accession = ? AND version = ?
                """,
                (*values, accession, version),
            )
        else:
            conn.execute(
                "UPDATE taxonomy SET name = ? WHERE taxonomy_id = ?",
                (entity.name, entity.taxonomyId),
            )

    def _insert_taxonomy_reference(self, conn: DuckDBPyConnection, entity: ReferenceSequence) -> None:
        # Taxonomy is referenced, not owned: only make sure the row exists
        taxonomy = entity.taxonomy
        if taxonomy is None:
            return
        row = conn.execute(
            "SELECT name FROM taxonomy WHERE taxonomy_id = ?",
            (taxonomy.taxonomyId,),
        ).fetchone()
        if row is not None and row[0] != taxonomy.name:
            raise ValidationError(
                "ReferenceSequence",
                entity.accessionVersionId,
                f"taxonomy {taxonomy.taxonomyId} is stored as {row[0]!r}, not {taxonomy.name!r}",
            )
        conn.execute(
            "INSERT OR IGNORE INTO taxonomy VALUES (?, ?)",
            (taxonomy.taxonomyId, taxonomy.name),
        )


def _table_name(kind: Type[Entity]) -> str:
    if kind is Study:
        return "study"
    if kind is ReferenceSequence:
        return "reference_sequence"
    if kind is Taxonomy:
        return "taxonomy"
    raise TypeError(f"unsupported entity type: {kind.__name__}")


def _study_row(study: Study) -> Tuple[Any, ...]:
    return (
        study.accessionVersionId.accession,
        study.accessionVersionId.version,
        study.name,
        study.description,
        study.center,
        study.releaseDate,
        study.deprecated,
    )


def _reference_sequence_row(reference_sequence: ReferenceSequence) -> Tuple[Any, ...]:
    taxonomy = reference_sequence.taxonomy
    return (
        reference_sequence.accessionVersionId.accession,
        reference_sequence.accessionVersionId.version,
        reference_sequence.name,
        reference_sequence.patch,
        reference_sequence.type_,
        json.dumps(reference_sequence.accessions),
        taxonomy.taxonomyId if taxonomy is not None else None,
    )
