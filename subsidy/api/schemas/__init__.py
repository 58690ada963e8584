from .common import ERROR_RESPONSES, ErrorResponse, PaginatedResponse, error_responses

__all__ = ["ERROR_RESPONSES", "ErrorResponse", "PaginatedResponse", "error_responses"]
