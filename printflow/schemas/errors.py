"""
schemas/errors.py — Error body returned by every failing endpoint

Built by the handlers in main.py for SettlementError, HTTPException and
request validation failures. request_id matches the x-request-id header.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    status_code: int
    request_id: str = ""
    detail: list[dict] | None = None
