"""Exception hierarchy for the chat core"""


class ChatError(Exception):
    """Base class for all errors raised by the chat core"""

    code: str = "chat_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Payload used for `error` events and HTTP error bodies"""
        return {"code": self.code, "message": self.message}


class AuthError(ChatError):
    """Missing, invalid or expired bearer token"""

    code = "auth_error"


class ValidationError(ChatError):
    """Inbound message or mutation failed validation"""

    code = "validation_error"


class NotFoundError(ChatError):
    """Operation referenced an unknown message"""

    code = "not_found"


class PermissionDeniedError(ChatError):
    """Mutation attempted by someone other than the message author"""

    code = "permission_denied"


class TransportError(ChatError):
    """Network-level failure talking to a client or collaborator"""

    code = "transport_error"
