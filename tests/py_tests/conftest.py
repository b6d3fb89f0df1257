import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Generator

import pytest

from sra_metadata_loader.config import Config
from sra_metadata_loader.logging.logger import _ctx


@lru_cache(maxsize=None)
def package_root() -> Path:
    root = Path(__file__).parent
    while not root.joinpath("pyproject.toml").exists():
        root = root.parent
    return root


@pytest.fixture(scope="session", autouse=True)
def reset_argv() -> Generator[None, None, None]:
    original_argv = sys.argv[:]
    sys.argv = ["sra_metadata_loader"]

    yield

    sys.argv = original_argv


@pytest.fixture(scope="session", autouse=True)
def reset_os_env() -> Generator[None, None, None]:
    original_os_env = {k: v for k, v in os.environ.items() if k.startswith("SRA_METADATA_LOADER_")}
    keys = original_os_env.keys()
    for k in keys:
        del os.environ[k]

    yield

    for k in keys:
        os.environ[k] = original_os_env[k]


@pytest.fixture()
def test_config(tmp_path: Path) -> Config:
    return Config(result_dir=tmp_path.joinpath("results"))


@pytest.fixture()
def clean_ctx() -> Generator[None, None, None]:
    """Clean up logger context after each test."""
    yield
    _ctx.set(None)


@pytest.fixture()
def fixture_dir() -> Path:
    return package_root().joinpath("tests", "fixtures")
