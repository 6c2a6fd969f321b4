# src/defpatch/core/utils/configure_logging.py
import logging
import sys
from typing import Dict, Optional, TextIO, Union

from tqdm import tqdm

Level = Union[str, int]

# Plain lines for normal runs, source locations once debugging
CLI_FORMAT = "%(levelname)s [%(name)s] %(message)s"
DEBUG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"


class LogWithTqdm(logging.Handler):
    """
    Routes log records through `tqdm.write()` so an active progress bar
    is redrawn below the message instead of being torn apart.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__()
        self.stream = stream

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


def level_from(value: Optional[Level], fallback: int) -> int:
    """Accepts 'debug', 'INFO', 10 ...; anything unknown gives `fallback`."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return fallback


def configure_logger(
        general_level: Optional[Level] = "WARNING",
        module_specific_levels: Optional[Dict[str, Level]] = None,
        silenced_loggers: Optional[Dict[str, Level]] = None,
        stream: Optional[TextIO] = None,
) -> LogWithTqdm:
    """
    Installs the tqdm-aware handler on the root logger.

    Calling it again replaces the handler of the previous call; handlers
    installed by anyone else are left alone.

    Args:
        general_level: Root level ('debug.level').
        module_specific_levels: Per-logger levels ('debug.module_levels').
        silenced_loggers: Loggers to raise to a high level ('debug.silenced_loggers').
        stream: Output stream, stderr by default.

    Returns:
        LogWithTqdm: The installed handler.
    """
    level = level_from(general_level, logging.WARNING)

    handler = LogWithTqdm(stream)
    handler.setFormatter(logging.Formatter(DEBUG_FORMAT if level <= logging.DEBUG else CLI_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for previous in [h for h in root_logger.handlers if isinstance(h, LogWithTqdm)]:
        root_logger.removeHandler(previous)
    root_logger.addHandler(handler)

    for name, module_level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(level_from(module_level, logging.INFO))

    for name, muted_level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(level_from(muted_level, logging.CRITICAL))

    return handler
