"""Error envelope schemas shared by every endpoint."""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: list[ErrorDetail] = []
    request_id: str = Field(alias="requestId")

    model_config = {"populate_by_name": True}


class ErrorResponse(BaseModel):
    """Top-level error envelope."""

    error: ErrorBody


def error_content(
    code: str, message: str, request_id: str, details: list | None = None
) -> dict:
    body = ErrorBody(code=code, message=message, details=details or [], request_id=request_id)
    return ErrorResponse(error=body).model_dump(by_alias=True)
