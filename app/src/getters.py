from fastapi import Request
from sqlalchemy.orm.session import Session

from app.src import exceptions, schemas
from app.src.db import AccountToken, Profile
from app.src.enums import AppID, Role


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def appRole(requestInfo: schemas.RequestInfo) -> Role:
    """Role served by the app handling the request."""
    if requestInfo.app_id == AppID.VENDOR:
        return Role.VENDOR
    if requestInfo.app_id == AppID.CUSTOMER:
        return Role.CUSTOMER
    raise exceptions.NoPermission()


def profile(token: AccountToken, session: Session) -> Profile | None:
    """Fetch the profile of the account owning the token."""
    return session.query(Profile).filter(Profile.id == token.account_id).first()
