"""Exceptions raised by the client protocol layer."""


class TdswebError(Exception):
    """Base class for tdsweb client errors."""


class DecodeError(TdswebError):
    """An inbound frame could not be decoded into a protocol message."""

    kind = "protocol"


class MissingTypeError(DecodeError):
    """The frame carried no ``type`` discriminator."""

    def __init__(self) -> None:
        super().__init__("No message type given.")


class UnknownTypeError(DecodeError):
    """The frame's ``type`` discriminator is not a recognized tag."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Unrecognized message type "{name}".')


class MalformedFrameError(DecodeError):
    """The frame is not a JSON object or a recognized tag has bad fields."""


class NotConnectedError(TdswebError, ConnectionError):
    """A send was attempted while the connection is not open."""

    def __init__(self) -> None:
        super().__init__("Not connected.")
