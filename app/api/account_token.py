from datetime import datetime, timedelta, timezone
from enum import IntEnum
from secrets import token_hex
from uuid import UUID
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status, Form
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, EmailStr

from app.api.bearer import bearer_account
from app.src.constants import MAX_ACCOUNT_TOKENS, MAX_TOKEN_VALIDITY
from app.src.db import Account, AccountToken, sessionMaker
from app.src import argon2, exceptions, validators, getters
from app.src.enums import AccountStatus, OrderIn, PlatformType
from app.src.loggers import logEvent
from app.src.functions import enumStr, makeExceptionResponses

route_auth = APIRouter()


## Output Schema
class MaskedAccountTokenSchema(BaseModel):
    id: UUID
    account_id: UUID
    expires_in: int
    expires_at: datetime
    platform_type: int
    client_details: Optional[str]
    created_on: datetime
    updated_on: Optional[datetime]


class AccountTokenSchema(MaskedAccountTokenSchema):
    access_token: str
    token_type: Optional[str] = "bearer"


## Input Forms
class CreateForm(BaseModel):
    email_id: EmailStr = Field(Form(max_length=256))
    password: str = Field(Form(max_length=32))
    platform_type: PlatformType = Field(
        Form(description=enumStr(PlatformType), default=PlatformType.OTHER)
    )
    client_details: str | None = Field(Form(max_length=1024, default=None))


class DeleteForm(BaseModel):
    id: UUID | None = Field(Form(default=None))


## Query Parameters
class OrderBy(IntEnum):
    expires_at = 1
    updated_on = 2
    created_on = 3


class QueryParams(BaseModel):
    platform_type: PlatformType | None = Field(
        Query(default=None, description=enumStr(PlatformType))
    )
    client_details: str | None = Field(Query(default=None))
    # id based
    id: UUID | None = Field(Query(default=None))
    id_list: List[UUID] | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


## Function
def searchAccountToken(
    session: Session, account_id: UUID, qParam: QueryParams
) -> List[AccountToken]:
    query = session.query(AccountToken).filter(AccountToken.account_id == account_id)

    # Filters
    if qParam.platform_type is not None:
        query = query.filter(AccountToken.platform_type == qParam.platform_type)
    if qParam.client_details is not None:
        query = query.filter(
            AccountToken.client_details.ilike(f"%{qParam.client_details}%")
        )
    # id based
    if qParam.id is not None:
        query = query.filter(AccountToken.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(AccountToken.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(AccountToken.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(AccountToken.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(AccountToken, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Auth]
@route_auth.post(
    "/account/token",
    tags=["Token"],
    response_model=AccountTokenSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InactiveAccount, exceptions.InvalidCredentials]
    ),
    description="""
    Issues a new access token after validating the email and password.

    - The token works on both the customer and the vendor app.
    - Limits tokens per account using MAX_ACCOUNT_TOKENS (the oldest one is rotated out).
    - Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    - Token will be generated for ACTIVE accounts only.
    - Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        account = (
            session.query(Account)
            .filter(Account.email_id == str(fParam.email_id).lower())
            .first()
        )
        if account is None:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, account.password):
            raise exceptions.InvalidCredentials()
        if account.status != AccountStatus.ACTIVE:
            raise exceptions.InactiveAccount()
        if argon2.needsRehash(account.password):
            account.password = argon2.makePassword(fParam.password)

        # Remove excess tokens from DB
        tokens = (
            session.query(AccountToken)
            .filter(AccountToken.account_id == account.id)
            .order_by(AccountToken.created_on.desc())
            .all()
        )
        for token in tokens[MAX_ACCOUNT_TOKENS - 1 :]:
            session.delete(token)
        session.flush()

        # Create a new token
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=MAX_TOKEN_VALIDITY)
        token = AccountToken(
            account_id=account.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expires_at,
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return token
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.patch(
    "/account/token",
    tags=["Token"],
    response_model=AccountTokenSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Refreshes the access token used in the request.

    - Extends `expires_at` by `MAX_TOKEN_VALIDITY` seconds.
    - Rotates the `access_token` value (invalidates the old token immediately).
    - Logs the refresh event for auditability.
    """,
)
async def refresh_token(
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        token.expires_in += MAX_TOKEN_VALIDITY
        token.expires_at += timedelta(seconds=MAX_TOKEN_VALIDITY)
        token.access_token = token_hex(32)
        session.commit()
        session.refresh(token)
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return token
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.delete(
    "/account/token",
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Revokes an access token of the current account.

    - If no ID is provided, it deletes the token used in the request (self-revocation).
    - Tokens of other accounts are never touched.
    - If the token ID is invalid or already deleted, the operation is silently ignored.
    - Returns 204 No Content upon success.
    - Logs the token revocation event for audit tracking.
    """,
)
async def delete_token(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        if fParam.id is None:
            tokenToDelete = token
        else:
            tokenToDelete = (
                session.query(AccountToken)
                .filter(AccountToken.id == fParam.id)
                .filter(AccountToken.account_id == token.account_id)
                .first()
            )
            if tokenToDelete is None:
                return Response(status_code=status.HTTP_204_NO_CONTENT)

        session.delete(tokenToDelete)
        session.commit()
        logEvent(
            token,
            request_info,
            jsonable_encoder(tokenToDelete, exclude={"access_token"}),
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.get(
    "/account/token",
    tags=["Token"],
    response_model=List[MaskedAccountTokenSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the tokens of the current account filtered by optional query parameters.

    - Supports filtering by ID, platform type, client details, and creation timestamps.
    - Supports pagination with `offset` and `limit`.
    - Supports sorting using `order_by` and `order_in`.
    """,
)
async def fetch_tokens(qParam: QueryParams = Depends(), bearer=Depends(bearer_account)):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        return searchAccountToken(session, token.account_id, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
