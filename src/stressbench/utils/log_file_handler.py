"""
Run log file handler

Sends stress run logs to the console and, optionally, to a timestamped file
organised as <base_dir>/<YYYYMMDD>/<profile>/<run_id>_<HHMMSS>.log
"""

import logging
import os
from datetime import datetime
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class RunFileHandler(logging.FileHandler):
    """File handler that creates its own directory and file name"""

    def __init__(self, run_id: str, profile_name: str, base_dir: str = "results/logs"):
        self.run_id = run_id
        self.profile_name = profile_name
        self.base_dir = base_dir
        self.log_file_path = self._create_log_file_path()

        super().__init__(self.log_file_path, mode='w', encoding='utf-8')
        self.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    def _create_log_file_path(self) -> str:
        now = datetime.now()
        log_dir = os.path.join(self.base_dir, now.strftime("%Y%m%d"), self.profile_name)
        os.makedirs(log_dir, exist_ok=True)
        return os.path.join(log_dir, f"{self.run_id}_{now.strftime('%H%M%S')}.log")

    def get_log_file_path(self) -> str:
        return self.log_file_path


def setup_run_logging(level: str = "INFO", log_dir: Optional[str] = None,
                      run_id: str = "001", profile_name: str = "stress",
                      logger: Optional[logging.Logger] = None) -> Optional[RunFileHandler]:
    """
    Configure console logging (and file logging when log_dir is given) on the
    root logger, replacing handlers from a previous setup.

    Returns:
        The file handler, or None when logging to console only
    """
    logger = logger or logging.getLogger()
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
    logger.addHandler(console_handler)

    if not log_dir:
        return None
    file_handler = RunFileHandler(run_id, profile_name, base_dir=log_dir)
    logger.addHandler(file_handler)
    logger.info(f"Logging to {file_handler.get_log_file_path()}")
    return file_handler
