import logging
from datetime import datetime
from pathlib import Path

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LazyFileHandler(logging.Handler):
    """Error log file that is only created once something is logged to it."""

    def __init__(self, log_dir: Path, level: int = logging.ERROR):
        super().__init__(level)
        self.log_dir = log_dir
        self.file_handler = None
        self.timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    def emit(self, record):
        if self.file_handler is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            error_log_file = self.log_dir / f"spp_errors_{self.timestamp}.log"
            self.file_handler = logging.FileHandler(error_log_file, encoding="utf-8")
            self.file_handler.setLevel(self.level)
            self.file_handler.setFormatter(self.formatter)

        self.file_handler.emit(record)

    def close(self):
        if self.file_handler:
            self.file_handler.close()
        super().close()


def setup_logging(log_dir=None, level="INFO") -> None:
    if log_dir is None:
        log_dir = Path(__file__).parent.parent / "logs"
    log_dir = Path(log_dir)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace only what an earlier call installed
    for handler in list(root_logger.handlers):
        if getattr(handler, "_spp_handler", False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler._spp_handler = True
    root_logger.addHandler(console_handler)

    lazy_error_handler = LazyFileHandler(log_dir, level=logging.ERROR)
    lazy_error_handler.setFormatter(formatter)
    lazy_error_handler._spp_handler = True
    root_logger.addHandler(lazy_error_handler)

    logging.getLogger(__name__).debug("Logging initialized, errors go to %s", log_dir)
