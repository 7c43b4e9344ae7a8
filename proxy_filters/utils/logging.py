import logging
from pathlib import Path
from typing import Optional, Union

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """Configure the root logger and the ``proxy_filters`` logger.

    The package logger logs at ``level`` on the console and, when
    ``log_file`` is given, in that file too. Calling it again with the same
    file does not add a second handler.
    """
    logging.basicConfig(level=logging.INFO, format=CONSOLE_FORMAT, datefmt=DATE_FORMAT)

    logger = logging.getLogger('proxy_filters')
    logger.setLevel(level)

    if log_file is not None:
        path = str(Path(log_file).resolve())
        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
                return logger
        try:
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not set up file logging: {e}")

    return logger
