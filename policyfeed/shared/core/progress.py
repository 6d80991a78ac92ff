import sys
from typing import Any, Optional, TextIO

import structlog

from policyfeed.shared.core.exceptions import ProgressWriteError


class ProgressReporter:
    """
    Writes human-readable progress lines either to the structured logger or
    to a plain output stream, depending on whether logging is configured.
    """

    def __init__(
        self,
        is_logging: bool,
        stream: Optional[TextIO] = None,
        logger: Optional[Any] = None,
    ):
        self.is_logging = is_logging
        self.stream = stream if stream is not None else sys.stderr
        self.logger = logger if logger is not None else structlog.get_logger()

    def report(self, message: str) -> None:
        if self.is_logging:
            self.logger.info(message)
            return
        try:
            self.stream.write(f"{message}\n")
        except (OSError, ValueError) as exc:
            raise ProgressWriteError(
                f"failed to write progress line: {exc}", details={"line": message}
            ) from exc
