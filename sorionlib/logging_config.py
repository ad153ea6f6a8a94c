"""Logging for SorionLib: structlog events routed through stdlib handlers.

Every library module logs through ``structlog.get_logger("sorionlib.<subsystem>")``.
Records propagate up the stdlib hierarchy, so one event lands in three
places: the subsystem's own file, the combined ``sorionlib.log`` and the
console. Bot tokens and webhook secrets are scrubbed before rendering.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import structlog

SUBSYSTEMS = ("bot", "events", "commands", "interactions", "storage")

LOGGER_PREFIX = "sorionlib"

_DEFAULT_MAX_BYTES = 10 * 1024 * 1024
_DEFAULT_BACKUPS = 5

_SECRET_PATTERNS = (
    # "Authorization: Bot <token>"
    re.compile(r"Bot\s+[A-Za-z0-9_.-]{20,}"),
    # user id . timestamp . hmac
    re.compile(r"[A-Za-z0-9_-]{23,28}\.[A-Za-z0-9_-]{6,7}\.[A-Za-z0-9_-]{27,}"),
    re.compile(r"discord(?:app)?\.com/api/webhooks/\d+/[A-Za-z0-9_-]+"),
)

_REDACTED = "***REDACTED***"


def _redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(_REDACTED, text)
    return text


def _redact_shallow(value: Any) -> Any:
    if isinstance(value, str):
        return _redact(value)
    if isinstance(value, dict):
        return {k: _redact(v) if isinstance(v, str) else v for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_redact(v) if isinstance(v, str) else v for v in value)
    return value


def sanitize_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor replacing Discord secrets with a placeholder.

    Strings are scrubbed directly; lists, tuples and dicts are scrubbed
    one level deep.
    """
    for key in list(event_dict):
        event_dict[key] = _redact_shallow(event_dict[key])
    return event_dict


class _LogSettings(NamedTuple):
    log_dir: Path
    level: int
    subsystem_levels: Dict[str, str]
    max_bytes: int
    backup_count: int
    cache_loggers: bool

    @classmethod
    def from_config(cls, config) -> "_LogSettings":
        if config is None:
            return cls(Path.cwd() / "logs", logging.INFO, {}, _DEFAULT_MAX_BYTES, _DEFAULT_BACKUPS, False)
        return cls(
            log_dir=config.log_dir,
            level=_level(config.logging_level, logging.INFO),
            subsystem_levels=config.logging_subsystem_levels,
            max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
            backup_count=config.logging_backup_count,
            cache_loggers=True,
        )

    def level_for(self, subsystem: str) -> int:
        return _level(self.subsystem_levels.get(subsystem, ""), self.level)


def _level(name: str, default: int) -> int:
    if not name:
        return default
    level = getattr(logging, name.upper(), None)
    return level if isinstance(level, int) else default


def _fresh_logger(name: Optional[str], level: int) -> logging.Logger:
    """Return the named stdlib logger with its old handlers removed."""
    log = logging.getLogger(name)
    log.setLevel(level)
    log.handlers.clear()
    log.propagate = True
    return log


def _file_handler(path: Path, level: int, settings: _LogSettings, formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=settings.max_bytes,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _ensure_log_dir(log_dir: Path) -> bool:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(f"WARNING: log directory {log_dir} unavailable ({exc}); logging to console only.", file=sys.stderr)
        return False
    return True


def setup_logging(config=None) -> None:
    """Install the console handler, the combined file and one file per subsystem.

    Safe to call twice: once with no config at process start, and again
    with the loaded Config. Only the second call turns on structlog's
    logger caching, so loggers bound during startup pick up the final setup.
    """
    settings = _LogSettings.from_config(config)
    with_files = _ensure_log_dir(settings.log_dir)

    # Records arriving at the files are already rendered and scrubbed
    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    _fresh_logger(None, logging.DEBUG).addHandler(console)

    combined = _fresh_logger(LOGGER_PREFIX, logging.DEBUG)
    if with_files:
        combined.addHandler(
            _file_handler(settings.log_dir / f"{LOGGER_PREFIX}.log", settings.level, settings, file_formatter)
        )

    for subsystem in SUBSYSTEMS:
        level = settings.level_for(subsystem)
        sub_logger = _fresh_logger(f"{LOGGER_PREFIX}.{subsystem}", level)
        if with_files:
            sub_logger.addHandler(
                _file_handler(settings.log_dir / f"{subsystem}.log", level, settings, file_formatter)
            )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
