"""Schemas shared by every router."""

from typing import Any, Callable, Dict, Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing."""
    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def from_page(cls, result, convert: Callable[[Any], T]):
        """Build from a query-layer page, converting each row with ``convert``."""
        return cls(
            items=[convert(item) for item in result.items],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            pages=result.pages,
        )


class ErrorResponse(BaseModel):
    """Body of every engine error, see ``SubsidyError.to_dict``."""
    error: str = Field(..., description="Exception class name")
    detail: str
    code: str = Field(..., description="Machine-readable error code")
    errors: Dict[str, Any] = Field(default_factory=dict)


ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    403: {"model": ErrorResponse, "description": "Role or ownership does not allow the action"},
    404: {"model": ErrorResponse, "description": "Unknown process, user or document"},
    409: {"model": ErrorResponse, "description": "Wrong state or lost a concurrent update"},
    422: {"model": ErrorResponse, "description": "Invalid input"},
    502: {"model": ErrorResponse, "description": "Storage or PDF renderer failed"},
}


def error_responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    """Subset of ``ERROR_RESPONSES`` for a router's OpenAPI docs."""
    return {code: ERROR_RESPONSES[code] for code in codes}
