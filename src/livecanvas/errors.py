"""
Error types for the live canvas.

Lookup failures on the stores are KeyError subclasses so callers can treat
them like any missing mapping key. Failures inside author code never raise:
they are captured as CompileError records and rendered in place of the widget.
"""
from dataclasses import dataclass


class LiveCanvasError(Exception):
    """Base class for live canvas errors."""


class UnknownContentError(LiveCanvasError, KeyError):
    """No content with the given id."""


class UnknownDocumentError(LiveCanvasError, KeyError):
    """No document with the given id."""


class UnknownWidgetError(LiveCanvasError, KeyError):
    """No widget source registered under the given name."""


TRANSFORM_STAGE = "transform"
EVALUATE_STAGE = "evaluate"


@dataclass(frozen=True)
class CompileError:
    """Captured failure of one compile stage.

    stage is TRANSFORM_STAGE when the source does not parse and
    EVALUATE_STAGE when running the parsed source raised.
    """
    stage: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> 'CompileError':
        return cls(stage=stage, error_type=type(exc).__name__, message=str(exc))

    @classmethod
    def transform(cls, exc: BaseException) -> 'CompileError':
        """Record for a source that failed to parse."""
        return cls.from_exception(TRANSFORM_STAGE, exc)

    @classmethod
    def evaluation(cls, exc: BaseException) -> 'CompileError':
        """Record for a source that raised while being defined."""
        return cls.from_exception(EVALUATE_STAGE, exc)

    @property
    def is_transform_error(self) -> bool:
        return self.stage == TRANSFORM_STAGE

    @property
    def is_evaluation_error(self) -> bool:
        return self.stage == EVALUATE_STAGE

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"
