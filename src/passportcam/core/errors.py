from __future__ import annotations


class PassportCamError(Exception):
    """Base class for errors raised by passportcam."""


class ModelLoadError(PassportCamError):
    """The face-landmark model could not be created."""


class InvalidTransitionError(PassportCamError):
    """A workflow action was requested from a state that does not allow it."""

    def __init__(self, action: str, state: object):
        super().__init__(f"Cannot {action} while in state {getattr(state, 'value', state)!r}")
        self.action = action
        self.state = state


class CaptureUnavailableError(PassportCamError):
    """No frame could be frozen (camera not ready)."""


class ConfigError(PassportCamError):
    """A configuration file is malformed or names unknown settings."""
