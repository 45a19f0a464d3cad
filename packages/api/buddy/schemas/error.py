# This project was developed with assistance from AI tools.
"""Tagged JSON error envelope returned by every failing request."""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope.

    ``error`` is a stable snake_case code clients branch on; ``detail`` is
    for humans.
    """

    ok: bool = False
    error: str = Field(description="Machine-readable error code, e.g. 'not_found'.")
    status: int = Field(description="HTTP status code.")
    detail: str = Field(
        default="",
        description="Human-readable explanation specific to this occurrence.",
    )
    request_id: str = Field(
        default="",
        description="Correlation ID for tracing this request in logs.",
    )
