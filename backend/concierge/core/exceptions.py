from typing import Optional

from fastapi import HTTPException, status


class RetrievalError(Exception):
    """Raised when the retrieval collaborator fails; never swallowed by the engine."""

    def __init__(self, message: str = "retrieval failed", *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmbeddingError(Exception):
    pass


class RetrievalUnavailableException(HTTPException):
    def __init__(self, detail: str = "Product search is temporarily unavailable. Please try again."):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail
        )


class TurnProcessingException(HTTPException):
    def __init__(self, detail: str = "Something went wrong on our side. Please try again."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail
        )
