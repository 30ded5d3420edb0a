"""Error response schemas.

Every failed procedure call is answered with the same body shape::

    {"message": "Input validation failed", "code": "BAD_REQUEST", "issues": [...]}

``issues`` is only present for input validation failures. An error formatter
hook may add further top-level fields.

These models document the format in the generated OpenAPI document, where one
component per error code (``error.<CODE>``) is derived from ``ErrorResponse``.
"""

from pydantic import BaseModel, ConfigDict, Field


class ErrorIssue(BaseModel):
    """One input validation problem."""

    model_config = ConfigDict(extra="allow")

    message: str = Field(
        ...,
        description="What is wrong with the input",
        examples=["Field required", "Input should be a valid integer"],
    )

    code: str | None = Field(
        default=None,
        description="Machine-readable issue type",
        examples=["missing", "int_parsing"],
    )

    path: list[str | int] | None = Field(
        default=None,
        description="Location of the offending value inside the input",
        examples=[["name"], ["items", 0, "quantity"]],
    )


class ErrorResponse(BaseModel):
    """Body of every error response."""

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "examples": [
                {
                    "message": "Input validation failed",
                    "code": "BAD_REQUEST",
                    "issues": [
                        {"message": "Field required", "code": "missing", "path": ["name"]}
                    ],
                },
                {"message": "Not found", "code": "NOT_FOUND"},
            ]
        },
    )

    message: str = Field(
        ...,
        description="The error message",
        examples=["Internal server error"],
    )

    code: str = Field(
        ...,
        description="The error code",
        examples=["INTERNAL_SERVER_ERROR"],
    )

    issues: list[ErrorIssue] | None = Field(
        default=None,
        description="An array of issues that were responsible for the error",
        examples=[[]],
    )
