"""User-facing message sinks used by pipeline steps."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

log = logger


class Ui(Protocol):
    def say(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggerUi:
    """Route step messages through loguru.

    ``say`` goes to INFO and ``error`` to ERROR, attributed to the calling
    step rather than this class.
    """

    def __init__(self, prefix: str = ''):
        self.prefix = prefix

    def _fmt(self, message: str) -> str:
        return f'{self.prefix}{message}' if self.prefix else message

    def say(self, message: str) -> None:
        log.opt(depth=1).info('{}', self._fmt(message))

    def error(self, message: str) -> None:
        log.opt(depth=1).error('{}', self._fmt(message))
