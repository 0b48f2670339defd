"""Collector for non-fatal diagnostics.

Codecs report things a user may want to know about (unknown chunk tags,
checksum mismatches, unexpected but harmless field values) through a
:class:`Notifier`. The default implementation forwards to :mod:`logging`
and de-duplicates unknown tags so that a file with hundreds of identical
unknown chunks produces one log line.
"""

from __future__ import annotations

import logging


class Notifier:
    """Logs diagnostics and remembers which unknown tags were reported."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("sampler_chunks")
        self.ignored_tags: dict[str, set[str]] = {}

    def info(self, message: str, *args: object) -> None:
        self.logger.info(message, *args)

    def warning(self, message: str, *args: object) -> None:
        self.logger.warning(message, *args)

    def error(self, message: str, *args: object) -> None:
        self.logger.error(message, *args)

    def unknown_tag(self, format_name: str, tag: str) -> bool:
        """Report an unknown tag once per format.

        Returns True the first time the pair is seen.
        """
        seen = self.ignored_tags.setdefault(format_name, set())
        if tag in seen:
            return False
        seen.add(tag)
        self.logger.info("%s: ignoring unknown chunk '%s'", format_name, tag)
        return True
