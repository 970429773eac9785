"""Translate engine exceptions into HTTP errors."""

from fastapi import HTTPException

from dispatch.domain.errors import CommitError, DispatchError, ProviderError, TicketNotFound


def to_http_error(exc: DispatchError) -> HTTPException:
    if isinstance(exc, TicketNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ProviderError):
        return HTTPException(status_code=503, detail=f"Agent data unavailable: {exc}")
    if isinstance(exc, CommitError):
        return HTTPException(status_code=502, detail=f"Assignment could not be saved: {exc}")
    return HTTPException(status_code=500, detail=str(exc))
