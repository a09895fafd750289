# --------------------------------------------------------------
#  logging_config.py
# --------------------------------------------------------------
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from phylosmith.config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: Union[int, str, None] = None,
    log_dir: Union[Path, str, None] = None,
) -> Optional[Path]:
    """Attach a *console* handler and, optionally, a rotating *file* handler
    to the ``phylosmith`` logger.

    *   **File handler** - plaintext ``phylosmith.log`` in ``log_dir`` (rotates
        at 1 MB, keeps 3 backups), always at DEBUG.
    *   **Console handler** - human-readable output at ``level``.

    Calling the function again replaces the handlers it attached before.

    Returns:
        Path of the log file, or None when logging to the console only.
    """
    level = level if level is not None else Settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")
    log_dir = Path(log_dir) if log_dir is not None else Settings.LOG_DIR

    package_logger = logging.getLogger("phylosmith")
    package_logger.setLevel(logging.DEBUG if log_dir is not None else level)

    # Clear handlers attached by a previous call to avoid duplicates
    for handler in list(package_logger.handlers):
        if getattr(handler, "_phylosmith_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, "%H:%M:%S"))
    console_handler._phylosmith_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(console_handler)

    log_file: Optional[Path] = None
    if log_dir is not None:
        # Ensure the log directory exists *before* touching the file.
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / Settings.LOG_FILE_NAME
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
        file_handler._phylosmith_handler = True  # type: ignore[attr-defined]
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    package_logger.debug("Logging configured. Log file: %s", log_file)
    return log_file
