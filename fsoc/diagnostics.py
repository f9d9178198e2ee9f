"""Diagnostic logging for fsoc invocations.

Every invocation logs to two destinations at once:

- the console (stderr), filtered to WARNING, or INFO with ``--verbose``;
- a JSON-lines log file, recreated at the start of each invocation.

Records are produced with structlog and fanned out through a private stdlib
logger, so setting up diagnostics never touches process-wide logging state.
"""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, List, Optional

import structlog

LOGGER_NAME = "fsoc"


@dataclass
class Diagnostics:
    """Handle to the logging destinations of one invocation."""

    log: Any
    log_file: Optional[Path]
    logger: logging.Logger

    @property
    def file_enabled(self) -> bool:
        return self.log_file is not None

    def close(self) -> None:
        """Flush and detach both handlers."""
        for handler in list(self.logger.handlers):
            handler.flush()
            handler.close()
            self.logger.removeHandler(handler)


def _console_handler(stream: IO[str], verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setLevel(logging.INFO if verbose else logging.WARNING)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )
    )
    return handler


def _file_handler(path: Path) -> logging.Handler:
    # mode "w" truncates: the log holds the latest invocation only
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    return handler


def setup_diagnostics(
    log_file: Optional[str],
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> Diagnostics:
    """Establish console and file logging for this invocation.

    Args:
        log_file: Location of the JSON-lines log; None disables the file
        verbose: Lower the console threshold from WARNING to INFO
        stream: Console stream, defaults to the current ``sys.stderr``

    Returns:
        Diagnostics whose ``log`` is a structlog logger writing to both
        destinations. If the file cannot be created, ``log_file`` is None and
        a warning has already been logged to the console.
    """
    logger = logging.Logger(LOGGER_NAME, level=logging.INFO)
    logger.propagate = False
    logger.addHandler(_console_handler(stream or sys.stderr, verbose))

    file_path: Optional[Path] = None
    failure: Optional[OSError] = None
    if log_file:
        try:
            logger.addHandler(_file_handler(Path(log_file)))
            file_path = Path(log_file)
        except OSError as e:
            failure = e

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    log = structlog.wrap_logger(
        logger,
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    if failure is not None:
        log.warning(f"failed to create log at {log_file}", error=str(failure))

    return Diagnostics(log=log, log_file=file_path, logger=logger)
