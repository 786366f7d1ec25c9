class RelayError(Exception):
    """Base class for errors raised by the relay core."""


class JoinRejected(RelayError):
    """The upgrade request carried an invalid username or room, or the room refused it."""


class ProtocolViolation(RelayError):
    """A frame on an established connection could not be accepted. The connection must be terminated."""
