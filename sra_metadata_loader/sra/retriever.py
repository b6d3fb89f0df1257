"""
Archive からの study XML 取得。

- EnaBrowserRetriever: ENA browser API (GET {ena_url}/{accession}) から取得する
- LocalXmlRetriever: {xml_dir}/{accession}.xml を読む (オフライン import 用)

どちらもリトライはしない。リトライ方針は ImportRunner 側で決める。
"""
from abc import ABC, abstractmethod
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

import httpx

from sra_metadata_loader.config import Config
from sra_metadata_loader.errors import ConfigurationError, RetrievalError


class RecordRetriever(ABC):
    @abstractmethod
    def fetch(self, accession: str) -> bytes:
        """Fetch the raw XML for a single accession. Raises RetrievalError."""
        ...

    def close(self) -> None:
        pass

    def __enter__(self) -> "RecordRetriever":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()


class EnaBrowserRetriever(RecordRetriever):
    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(
            timeout=timeout,
            follow_redirects=True,
        )

    def get_url(self, accession: str) -> str:
        return f"{self.base_url}/{accession}"

    def fetch(self, accession: str) -> bytes:
        url = self.get_url(accession)
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as e:
            raise RetrievalError(accession, cause=e, message=f"timed out fetching {url}") from e
        except httpx.RequestError as e:
            raise RetrievalError(accession, cause=e) from e

        if response.status_code == 404:
            raise RetrievalError(accession, message=f"not found in archive: {url}")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RetrievalError(accession, cause=e) from e

        content = response.content
        if not content.strip():
            raise RetrievalError(accession, message=f"empty response from {url}")

        return content

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class LocalXmlRetriever(RecordRetriever):
    def __init__(self, xml_dir: Path) -> None:
        self.xml_dir = xml_dir

    def get_path(self, accession: str) -> Path:
        return self.xml_dir.joinpath(f"{accession}.xml")

    def fetch(self, accession: str) -> bytes:
        path = self.get_path(accession)
        if not path.is_file():
            raise RetrievalError(accession, message=f"file not found: {path}")
        try:
            content = path.read_bytes()
        except OSError as e:
            raise RetrievalError(accession, cause=e) from e

        if not content.strip():
            raise RetrievalError(accession, message=f"empty file: {path}")

        return content


def get_retriever(config: Config) -> RecordRetriever:
    if config.import_source == "api":
        return EnaBrowserRetriever(config.ena_url, timeout=config.request_timeout)
    if config.import_source == "file":
        if config.xml_dir is None:
            raise ConfigurationError("xml_dir is required when import_source is 'file'")
        if not config.xml_dir.is_dir():
            raise ConfigurationError(f"xml_dir is not a directory: {config.xml_dir}")
        return LocalXmlRetriever(config.xml_dir)
    raise ConfigurationError(f"unknown import_source: {config.import_source}")
