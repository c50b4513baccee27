"""
Error response models for the dispatch layer.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Wire representation of a structured error.

    Nested errors use the same shape. Native exceptions wrapped as a cause only
    carry ``message`` and ``stack``.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Validation Error",
                "code": "validation_error",
                "status": 422,
                "blob": [
                    {
                        "message": "One or more validation errors in request body",
                        "provider": "body",
                        "details": [
                            {
                                "type": "missing",
                                "loc": ["name"],
                                "msg": "Field required",
                                "input": {}
                            }
                        ]
                    }
                ]
            }
        }
    )

    message: str = Field(
        ...,
        description="Human-readable error message describing what went wrong"
    )

    code: Optional[Union[str, int]] = Field(
        None,
        description="Machine readable error code"
    )

    status: Optional[int] = Field(
        None,
        description="HTTP status code of the error"
    )

    blob: Optional[Any] = Field(
        None,
        description="Arbitrary diagnostic payload"
    )

    stack: Optional[str] = Field(
        None,
        description="Formatted traceback, only set for wrapped native exceptions"
    )

    inner_err: Optional["ErrorResponse"] = Field(
        None,
        alias="innerErr",
        description="The error that caused this one"
    )

    def model_dump(self, **kwargs):
        """Override to drop unset fields and use wire names by default."""
        kwargs.setdefault("exclude_none", True)
        kwargs.setdefault("by_alias", True)
        return super().model_dump(**kwargs)

    def model_dump_json(self, **kwargs):
        """Override to drop unset fields and use wire names by default."""
        kwargs.setdefault("exclude_none", True)
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)


class ValidationErrorDetail(BaseModel):
    """One blob entry of a validation error, describing a failing provider."""

    message: str
    provider: str
    details: List[Dict[str, Any]] = Field(default_factory=list)


ErrorResponse.model_rebuild()
