"""Client-side exceptions raised by ``RepairDeskClient``."""
from typing import Optional


class ClientError(Exception):
    """Base for every failure a page can receive from the client."""


class MissingTokenError(ClientError):
    def __init__(self, message: str = 'Not signed in'):
        super().__init__(message)


class ApiError(ClientError):
    """Non-2xx response (or a request that never got one)."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self):
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"
