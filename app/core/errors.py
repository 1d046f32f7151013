# app/core/errors.py
from fastapi import HTTPException, status


class PairingError(HTTPException):
    """Clase base de los errores que se devuelven al agente que hace la petición."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(PairingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Forbidden(PairingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Agent is not part of this conversation"


class OutOfTurn(PairingError):
    default_detail = "Not your turn"


class NotActive(PairingError):
    default_detail = "Conversation is not active"


class LimitReached(PairingError):
    default_detail = "Maximum messages reached"


class AlreadySubmitted(PairingError):
    default_detail = "Verdict already submitted"


class InvalidVerdict(PairingError):
    default_detail = "verdict must be MATCH or PASS"
