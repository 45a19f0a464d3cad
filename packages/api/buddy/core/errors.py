# This project was developed with assistance from AI tools.
"""HTTP error carrying a machine-readable code for the error envelope."""

from fastapi import HTTPException


class ApiError(HTTPException):
    """HTTPException with an explicit snake_case ``error`` code.

    Plain HTTPExceptions get a code derived from their status; raise this
    when the client needs to branch on something more specific, e.g.
    ``invalid_transition`` vs. ``blocked`` for the same 409.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        detail: str = "",
        headers: dict[str, str] | None = None,
    ):
        super().__init__(status_code=status_code, detail=detail or error, headers=headers)
        self.error = error
