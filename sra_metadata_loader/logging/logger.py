import inspect
import sys
import threading
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from secrets import token_hex
from typing import Any, Dict, Generator, Optional

from sra_metadata_loader.config import (LOCAL_TZ, LOG_DIR_NAME, TODAY,
                                        TODAY_STR, Config, default_config)
from sra_metadata_loader.logging.schema import (ErrorInfo, Extra, LoggerContext,
                                                LogLevel, LogRecord)

_ctx: ContextVar[Optional[LoggerContext]] = ContextVar("_ctx", default=None)
_write_lock = threading.Lock()

_STDERR_LEVELS = ("INFO", "WARNING", "ERROR", "CRITICAL")
_DEBUG_STDERR_LEVELS = ("DEBUG",) + _STDERR_LEVELS


def init_logger(
    *,
    run_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> LoggerContext:
    if config is None:
        config = default_config
    if run_name is None:
        run_name = _infer_run_name()
    run_id = _new_run_id(run_name)
    log_file = config.result_dir.joinpath(LOG_DIR_NAME, f"{run_id}.log.jsonl")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    ctx = LoggerContext(
        run_name=run_name,
        run_id=run_id,
        run_date=TODAY,
        log_file=log_file,
        config=config,
    )
    _ctx.set(ctx)

    return ctx


@contextmanager
def run_logger(
    *,
    run_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> Generator[LoggerContext, None, None]:
    """
    Initialize the logger and wrap a run with lifecycle records.

    start/end are logged at INFO, an escaping exception is logged at CRITICAL
    with lifecycle="failed" and re-raised. The JSONL log is loaded into
    log.duckdb when the run finishes either way.
    """
    ctx = init_logger(run_name=run_name, config=config)
    _log("INFO", f"{ctx.run_name} started", source=__name__, lifecycle="start")
    try:
        yield ctx
    except BaseException as e:
        _log("CRITICAL", f"{ctx.run_name} failed: {e}", source=__name__, error=e, lifecycle="failed")
        raise
    else:
        _log("INFO", f"{ctx.run_name} completed", source=__name__, lifecycle="end")
    finally:
        from sra_metadata_loader.logging.db import \
            insert_log_records  # pylint: disable=import-outside-toplevel
        if ctx.log_file.exists():
            insert_log_records(ctx.config, ctx.log_file)


def get_run_id() -> str:
    """run_id of the current run. Outside a run a fresh adhoc run_id is returned."""
    ctx = _ctx.get()
    if ctx is not None:
        return ctx.run_id
    return _new_run_id("adhoc")


def log_debug(message: str, *, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("DEBUG", message, source=_caller_module(), error=error, **extra)


def log_info(message: str, *, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("INFO", message, source=_caller_module(), error=error, **extra)


def log_warn(message: str, *, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("WARNING", message, source=_caller_module(), error=error, **extra)


def log_error(message: str, *, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("ERROR", message, source=_caller_module(), error=error, **extra)


def log_critical(message: str, *, error: Optional[BaseException] = None, **extra: Any) -> None:
    _log("CRITICAL", message, source=_caller_module(), error=error, **extra)


def to_error_info(error: BaseException) -> ErrorInfo:
    return ErrorInfo(
        type=type(error).__name__,
        message=str(error),
        traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
    )


def _log(
    level: LogLevel,
    message: str,
    *,
    source: str,
    error: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """
    Without an initialized context (no init_logger/run_logger), the record
    is only written to stderr.
    """
    ctx = _ctx.get()

    extra_dict: Dict[str, Any] = {k: (str(v) if isinstance(v, Path) else v) for k, v in extra.items() if v is not None}

    record = LogRecord(
        timestamp=datetime.now(LOCAL_TZ),
        run_date=ctx.run_date if ctx else TODAY,
        run_id=ctx.run_id if ctx else "adhoc",
        run_name=ctx.run_name if ctx else "adhoc",
        source=source,
        log_level=level,
        message=message,
        error=to_error_info(error) if error is not None else None,
        extra=Extra(**extra_dict),
    )

    if ctx is not None:
        _append_jsonl(ctx.log_file, record)
    _emit_stderr(record, debug=ctx.config.debug if ctx else False)


def _append_jsonl(path: Path, record: LogRecord) -> None:
    with _write_lock:
        with path.open("a", encoding="utf-8") as f:
            f.write(record.model_dump_json())
            f.write("\n")


def _emit_stderr(record: LogRecord, *, debug: bool = False) -> None:
    if record.log_level not in (_DEBUG_STDERR_LEVELS if debug else _STDERR_LEVELS):
        return
    try:
        ts = record.timestamp.isoformat(timespec="seconds")
        line = f"{ts} - {record.run_name} - {record.log_level} - {record.message or ''}"

        details = []
        if record.extra.accession:
            details.append(f"accession={record.extra.accession}")
        if record.extra.stage:
            details.append(f"stage={record.extra.stage}")
        if record.extra.file:
            details.append(f"file={record.extra.file}")
        if details:
            line += " [" + ", ".join(details) + "]"

        sys.stderr.write(line + "\n")
        sys.stderr.flush()
    except Exception:  # pylint: disable=broad-except
        pass


def _new_run_id(run_name: str) -> str:
    return f"{TODAY_STR}_{run_name}_{token_hex(2)}"


def _infer_run_name() -> str:
    if sys.argv and sys.argv[0]:
        name = Path(sys.argv[0]).stem
        if name and name not in ("-c", "__main__"):
            return name
    return "adhoc"


def _caller_module() -> str:
    # frames: _caller_module <- log_* <- caller
    frame = inspect.currentframe()
    try:
        caller = frame.f_back.f_back if frame and frame.f_back else None
        if caller is None:
            return "<unknown>"
        module = inspect.getmodule(caller)
        if module and module.__name__:
            return module.__name__
        return "<unknown>"
    finally:
        del frame
