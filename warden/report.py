# Run-scoped, human-readable audit report.

import logging
import os
from datetime import datetime

from .console import fncFormatMessage, fncPrintMessage
from .errors import SetupError

REPORT_TS_FORMAT = "%Y-%m-%d_%H-%M-%S"


class AuditReport:
    """Plain-text report for one run; tee() also prints to the console."""

    def __init__(self, report_dir: str, mode: str, when: datetime | None = None):
        when = when or datetime.now()
        self.path = os.path.join(report_dir, f"acctwarden_{mode}_report_{when.strftime(REPORT_TS_FORMAT)}.txt")
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
            self._fh = os.fdopen(fd, "w")
        except OSError as e:
            raise SetupError(f"Cannot create report file {self.path}: {e}") from e
        self.line(f"acctwarden {mode} report - {when.ctime()}")
        self.line("-" * 39)
        self.line()
        logging.info("Report file: %s", self.path)

    def line(self, text: str = ""):
        self._fh.write(text + "\n")
        self._fh.flush()

    def tee(self, message: str, msg_type: str = "plain"):
        fncPrintMessage(message, msg_type)
        self.line(fncFormatMessage(message, msg_type))

    def close(self):
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
