from fastapi import HTTPException


class ValidationError(HTTPException):
    """Malformed input. Shown to the user as-is and never retried."""

    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class ConflictError(HTTPException):
    """
    A precondition no longer holds (balance moved, document reached a terminal state).
    Callers refetch the current aggregate and retry; nothing here retries for them.
    """

    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)
