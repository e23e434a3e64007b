import logging
import sys

import structlog
from structlog.stdlib import add_log_level, add_logger_name


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(level: int | str = logging.INFO, colors: bool | None = None) -> None:
    """Route structlog through standard logging at ``level``.

    Level names from the geometry config ("DEBUG", "info", ...) are accepted
    as well as ``logging`` constants. Colours follow whether stderr is a
    terminal unless ``colors`` says otherwise.
    """
    level = _resolve_level(level)
    if colors is None:
        colors = sys.stderr.isatty()

    logging.basicConfig(level=level, format="%(message)s")
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_logger_name,
            add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
