"""Import パイプラインの例外定義。

- 致命的なもの (run 全体を中断): ConfigurationError, ResourceNotFoundError, MalformedResourceError
- accession 単位のもの (ImportRunner が記録して次へ進む): RetrievalError, ParseError, ConversionError
- store 由来のもの: ValidationError, ConflictError, EntityNotFoundError, PersistenceError
"""
from pathlib import Path
from typing import Any, Optional, Union


class LoaderError(Exception):
    """sra_metadata_loader が送出する例外の基底クラス。"""


# === Fatal ===


class ConfigurationError(LoaderError):
    pass


class ResourceNotFoundError(LoaderError):
    def __init__(self, path: Union[str, Path], message: Optional[str] = None) -> None:
        self.path = str(path)
        super().__init__(message or f"resource not found: {self.path}")


class MalformedResourceError(LoaderError):
    def __init__(self, path: Union[str, Path], message: Optional[str] = None) -> None:
        self.path = str(path)
        super().__init__(message or f"resource is not valid/corrupt: {self.path}")


# === Per accession ===


class AccessionError(LoaderError):
    """accession に紐づく失敗。cause は元の例外 (あれば)。"""

    def __init__(
        self,
        accession: str,
        cause: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> None:
        self.accession = accession
        self.cause = cause
        if message is None:
            message = str(cause) if cause is not None else "unknown error"
        super().__init__(f"{accession}: {message}")


class RetrievalError(AccessionError):
    pass


class ParseError(AccessionError):
    pass


class ConversionError(AccessionError):
    pass


# === Store ===


class ValidationError(LoaderError):
    def __init__(self, kind: str, key: Any, reason: str) -> None:
        self.kind = kind
        self.key = key
        self.reason = reason
        super().__init__(f"{kind} {key}: {reason}")


class ConflictError(LoaderError):
    def __init__(self, kind: str, key: Any) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} already exists")


class EntityNotFoundError(LoaderError):
    def __init__(self, kind: str, key: Any) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} does not exist")


class PersistenceError(LoaderError):
    pass
