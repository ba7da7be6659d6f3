from __future__ import annotations

import logging
from typing import Optional


class GenerationReporter:
    """Receives the generator's progress and abort events. Backed by a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("tablefill.generator")

    def emptied(self, table: str) -> None:
        self.logger.info("empty: %s", table)

    def started(self, table: str) -> None:
        self.logger.info("fill: %s", table)

    def progress(self, table: str, current: int, target: int) -> None:
        self.logger.info("%s: %s / %s", table, f"{current:,}", f"{target:,}")

    def aborted(self, table: str, reason: str) -> None:
        self.logger.warning("%s: %s", table, reason)
