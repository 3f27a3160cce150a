"""Exception hierarchy shared by the session driver, motion engine and registry.

Transient infrastructure faults are retried where they happen. Everything that
reaches a caller derives from :class:`CellError` so a scripted task can decide
whether to abort its sequence.
"""

from typing import List, Optional


class CellError(Exception):
    """Base class for all cell coordination errors."""


class ControllerConnectionError(CellError):
    """The robot controller could not be reached within the allowed time."""


class PreconditionError(CellError):
    """An operator or environment precondition is not met. Never retried."""


class ModeError(CellError):
    """A controller mode transition failed after its single self-heal attempt."""


class ActuationError(CellError):
    """A command was accepted but its post-condition could not be verified."""


class StartError(ActuationError):
    """The controller program could not be started."""


class NotReadyError(CellError):
    """Motion was requested before the controller reached streaming mode."""


class UnknownComponentError(CellError, KeyError):
    """A planning component id is not registered."""

    def __init__(self, component_id: str):
        super().__init__(component_id)
        self.component_id = component_id

    def __str__(self):
        return f"Unknown planning component '{self.component_id}'"


class MotionError(CellError):
    """A motion goal was not achieved."""


class ComponentBusyError(MotionError):
    """A goal is already in flight for the component."""


class TargetLostError(MotionError):
    """The goal could not be recomputed because its target disappeared."""


class MotionTimeoutError(MotionError):
    """The goal was not reached within the caller supplied timeout."""


class RetryBudgetExhausted(MotionError):
    """Every rung of the retry ladder failed.

    :param attempts: the attempts made, in order
    """

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])
