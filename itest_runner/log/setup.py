import logging
import sys

from itest_runner.config import effective_settings as config
from itest_runner.log.handler import LokiHandler

DEFAULT_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """
    Formats runner logs normally and child-process lines as tagged raw output.

    Lines read from a child's pipes are logged on 'proc.<name>' loggers. They
    are printed as '[NAME] line', or '[NAME ERROR] line' for stderr.
    """

    def __init__(self) -> None:
        super().__init__(DEFAULT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.name.startswith('proc.'):
            tag = record.name.split('.', 1)[1].upper()
            if record.levelno >= logging.ERROR:
                tag = f"{tag} ERROR"
            return f"[{tag}] {record.getMessage()}"
        return super().format(record)


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configures the root logger for the runner.
    This sets up the console handler and optionally the Loki handler,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- Loki Handler (conditional) ---
    if config.LOKI_ENABLED:
        try:
            loki_handler = LokiHandler(url=config.LOKI_URL, org_id=config.LOKI_ORG_ID)
            loki_handler.setLevel(logging.INFO)
            loki_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            root_logger.addHandler(loki_handler)
            root_logger.info(f"Grafana Loki logging handler initialized for {config.LOKI_URL}.")
        except Exception as e:
            root_logger.error(f"Failed to initialize Grafana Loki logging handler: {e}")
