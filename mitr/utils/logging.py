"""
Logging setup for the Mitr pipeline.

Each component logs under its own name ("orchestrator", "llm_client",
"safety_assessor", ...). Everything goes to one log file; the terminal only
shows critical lines, which is where immediate-alert logs land.
"""
import os
import logging

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s - %(message)s'


def setup_logging(log_file_path: str, level: str = "INFO") -> str:
    """
    Route pipeline logs to ``log_file_path`` and critical alerts to the console.

    Previous root handlers are removed, so calling this twice does not
    duplicate lines. The file is appended to across runs.

    Args:
        log_file_path: Log file; missing parent directories are created
        level: Threshold for the file handler; unknown names fall back to INFO

    Returns:
        The log file path, for the startup banner
    """
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_file_path, mode='a')
    file_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)

    # Crisis alerts are logged at CRITICAL
    alert_handler = logging.StreamHandler()
    alert_handler.setLevel(logging.CRITICAL)
    alert_handler.setFormatter(logging.Formatter('🚨 %(message)s'))
    root_logger.addHandler(alert_handler)

    return log_file_path
