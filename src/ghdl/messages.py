"""Status messages emitted by pipeline stages.

Stages never write to the log directly. They emit one of the message types
below to a :class:`MessageSink`, which applies the quiet/verbose policy and
forwards what survives to :mod:`logging`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Union

logger = logging.getLogger("ghdl")


class Verbosity(Enum):
    """How much the sink lets through."""

    QUIET = "quiet"  # warnings and errors only
    NORMAL = "normal"  # plus run summary lines
    VERBOSE = "verbose"  # plus per-repository detail


@dataclass(frozen=True)
class InfoMessage:
    """Progress text. ``detail`` marks per-repository chatter."""

    text: str
    detail: bool = False


@dataclass(frozen=True)
class WarningMessage:
    text: str


@dataclass(frozen=True)
class ErrorMessage:
    """A task-local failure; the run continues."""

    error: BaseException


Message = Union[InfoMessage, WarningMessage, ErrorMessage]


class MessageSink:
    """Single consumer for every stage's messages."""

    def __init__(self, verbosity: Verbosity = Verbosity.NORMAL, log: logging.Logger = logger):
        self.verbosity = verbosity
        self.log = log
        self.error_count = 0

    def emit(self, message: Message) -> None:
        if isinstance(message, ErrorMessage):
            self.error_count += 1
            self.log.error("%s", message.error)
        elif isinstance(message, WarningMessage):
            self.log.warning("%s", message.text)
        elif isinstance(message, InfoMessage):
            if self.verbosity is Verbosity.QUIET:
                return
            if message.detail and self.verbosity is not Verbosity.VERBOSE:
                return
            self.log.info("%s", message.text)
        else:
            raise TypeError(f"unsupported message type: {type(message).__name__}")

    def info(self, text: str, detail: bool = False) -> None:
        self.emit(InfoMessage(text, detail=detail))

    def warning(self, text: str) -> None:
        self.emit(WarningMessage(text))

    def error(self, error: BaseException) -> None:
        self.emit(ErrorMessage(error))


def configure_logging(verbosity: Verbosity = Verbosity.NORMAL) -> None:
    """Send ``ghdl`` log records to stderr.

    Errors are prefixed with ``fail:``; everything else is printed bare.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(_PlainFormatter())

    log = logging.getLogger("ghdl")
    log.handlers.clear()
    log.addHandler(handler)
    log.setLevel(logging.WARNING if verbosity is Verbosity.QUIET else logging.INFO)
    log.propagate = False


class _PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"fail: {text}"
        if record.levelno >= logging.WARNING:
            return f"warning: {text}"
        return text
