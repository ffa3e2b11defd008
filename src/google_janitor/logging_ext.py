"""!
@brief Structured logging helpers for Google Janitor.
@details Two channels are configured side by side: a human-readable text log
(optionally echoed to the console) and a JSONL event stream for automation.
Every run starts with a ``run_start`` event carrying a run identifier and the
version metadata from :mod:`google_janitor.version`.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, Iterable, Mapping, Tuple

from . import version

HUMAN_LOGGER_NAME = "google_janitor.human"
"""!
@brief Logger name for human-readable output.
"""

MACHINE_LOGGER_NAME = "google_janitor.machine"
"""!
@brief Logger name for JSONL event output.
"""

HUMAN_LOG_FILENAME = "human.log"
MACHINE_LOG_FILENAME = "events.jsonl"

_STANDARD_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "channel", "taskName"}

_CURRENT_LOG_DIRECTORY: Path | None = None
_RUN_METADATA: Dict[str, object] | None = None


class _ChannelFilter(logging.Filter):
    """!
    @brief Stamp every record with the channel it was emitted on.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Render records as one JSON object per line.
    @details Caller supplied ``extra`` attributes are merged into the payload;
    values that cannot be serialised fall back to ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        payload: Dict[str, object] = {
            "timestamp": _utc_iso(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        payload.update(_extract_extras(record))
        try:
            return json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError):
            return json.dumps(
                {key: _coerce_json(value) for key, value in payload.items()},
                ensure_ascii=False,
            )


def _utc_iso(created: float | None = None) -> str:
    if created is None:
        moment = _dt.datetime.now(tz=_dt.timezone.utc)
    else:
        moment = _dt.datetime.fromtimestamp(created, tz=_dt.timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _extract_extras(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
    }


def _coerce_json(value: object) -> object:
    if isinstance(value, Path):
        return str(value)
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


def _reset_logger(
    logger: logging.Logger,
    formatter: logging.Formatter,
    handlers_to_add: Iterable[logging.Handler],
) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    for handler in handlers_to_add:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False


def setup_logging(
    root_dir: Path,
    *,
    json_to_stdout: bool = False,
    console: bool = False,
    level: int = logging.INFO,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Configure the human and machine loggers under ``root_dir``.
    @details Both files rotate at 1 MiB with five backups. ``console`` echoes
    the human channel to ``stderr`` for interactive runs; ``json_to_stdout``
    mirrors the event stream to ``stdout`` for automation.
    @returns ``(human_logger, machine_logger)``.
    """

    global _CURRENT_LOG_DIRECTORY

    root_dir = Path(root_dir)
    root_dir.mkdir(parents=True, exist_ok=True)
    _CURRENT_LOG_DIRECTORY = root_dir

    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)
    human_logger.setLevel(level)
    machine_logger.setLevel(level)

    human_handlers: list[logging.Handler] = [
        handlers.RotatingFileHandler(
            root_dir / HUMAN_LOG_FILENAME,
            maxBytes=1_048_576,
            backupCount=5,
            encoding="utf-8",
        )
    ]
    if console:
        human_handlers.append(logging.StreamHandler(stream=sys.stderr))

    machine_handlers: list[logging.Handler] = [
        handlers.RotatingFileHandler(
            root_dir / MACHINE_LOG_FILENAME,
            maxBytes=1_048_576,
            backupCount=5,
            encoding="utf-8",
        )
    ]
    if json_to_stdout:
        machine_handlers.append(logging.StreamHandler(stream=sys.stdout))

    _reset_logger(
        human_logger,
        logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ),
        human_handlers,
    )
    _reset_logger(machine_logger, _JsonLineFormatter(), machine_handlers)

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger)
    return human_logger, machine_logger


def build_event_extra(event: str, **fields: object) -> Dict[str, object]:
    """!
    @brief Assemble an ``extra=`` mapping for a machine log record.
    @details Paths are converted to strings so the JSON formatter never has to
    fall back to ``repr`` for the most common payload type.
    """

    payload: Dict[str, object] = {"event": event}
    for key, value in fields.items():
        if isinstance(value, Path):
            payload[key] = str(value)
        elif isinstance(value, (list, tuple)) and any(isinstance(item, Path) for item in value):
            payload[key] = [str(item) for item in value]
        else:
            payload[key] = value
    return payload


def get_human_logger() -> logging.Logger:
    """!
    @brief Return the human-readable logger configured by :func:`setup_logging`.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Return the JSONL event logger configured by :func:`setup_logging`.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def get_log_directory() -> Path | None:
    return _CURRENT_LOG_DIRECTORY


def get_run_metadata() -> Mapping[str, object] | None:
    """!
    @brief Return a copy of the latest ``run_start`` payload.
    @details Contains ``run_id``, ``timestamp``, ``version``, ``build``,
    ``python`` and ``logdir``.
    """

    return dict(_RUN_METADATA) if _RUN_METADATA is not None else None


def _emit_run_metadata(human_logger: logging.Logger, machine_logger: logging.Logger) -> None:
    global _RUN_METADATA

    _RUN_METADATA = {
        "run_id": uuid.uuid4().hex,
        "timestamp": _utc_iso(),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(_CURRENT_LOG_DIRECTORY) if _CURRENT_LOG_DIRECTORY else None,
    }

    human_logger.info(
        "Google Janitor %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        _RUN_METADATA["run_id"],
    )
    machine_logger.info("run_start", extra=build_event_extra("run_start", run=dict(_RUN_METADATA)))
