"""Exception types raised at Taptic component boundaries."""


class TapticError(Exception):
    """Base class for all Taptic errors."""


class AudioSourceError(TapticError):
    """The audio source could not be opened (no device, permission denied)."""


class ClassifierConfigError(TapticError):
    """The model and label catalog disagree on shape."""


class MessageDecodeError(TapticError):
    """A relay datagram could not be decoded."""
