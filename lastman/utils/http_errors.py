from fastapi import HTTPException

from lastman.services.errors import LeagueError


def to_http_exception(exc: LeagueError) -> HTTPException:
    """Surface a domain error verbatim as an HTTP error."""
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message},
    )
