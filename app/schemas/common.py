"""Response envelopes shared by every endpoint."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope: {statusCode, data, message, success}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int = Field(..., ge=100, le=599)
    data: DataT
    message: str = "Success"
    success: bool = True

    @classmethod
    def of(cls, status_code: int, data: Any, message: str) -> "ApiResponse":
        return cls(
            status_code=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )


class ErrorResponse(BaseModel):
    """Error envelope: {statusCode, message, success: false, errors}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    message: str
    success: bool = False
    errors: list[Any] = Field(default_factory=list)
