"""
Errors surfaced to the sending client as an `error` event
"""


class SignalingError(Exception):
    """Rejects a single inbound message; the connection stays open"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(SignalingError):
    """Offer between clients that do not share a voice channel"""


class MalformedMessage(SignalingError):
    """Undecodable frame, unknown event or wrong payload shape"""
