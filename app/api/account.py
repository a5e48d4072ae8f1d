from datetime import datetime
from uuid import UUID
from typing import Optional
from fastapi import APIRouter, Depends, Response, status, Form
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field, EmailStr

from app.api.bearer import bearer_account
from app.src.constants import REGEX_PASSWORD
from app.src.db import Account, sessionMaker
from app.src import argon2, exceptions, validators, getters
from app.src.loggers import logEvent
from app.src.functions import makeExceptionResponses

route_auth = APIRouter()


## Output Schema
class AccountSchema(BaseModel):
    id: UUID
    email_id: str
    status: int
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    email_id: EmailStr = Field(
        Form(max_length=256, description="Email in RFC 5322 format")
    )
    password: str = Field(Form(pattern=REGEX_PASSWORD, min_length=8, max_length=32))


class UpdateForm(BaseModel):
    email_id: EmailStr | None = Field(
        Form(max_length=256, default=None, description="Email in RFC 5322 format")
    )
    password: str | None = Field(
        Form(pattern=REGEX_PASSWORD, min_length=8, max_length=32, default=None)
    )


## API endpoints [Auth]
@route_auth.post(
    "/account",
    tags=["Account"],
    response_model=AccountSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation("")]),
    description="""
    Signs up a new account with an active status.
    The password is hashed using Argon2 before storing.
    Duplicate email addresses are not allowed.
    The account is usable on both the customer and the vendor app, the role
    is decided by the profile created afterwards.
    """,
)
async def create_account(
    fParam: CreateForm = Depends(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        account = Account(
            email_id=str(fParam.email_id).lower(),
            password=argon2.makePassword(fParam.password),
        )
        session.add(account)
        session.commit()
        session.refresh(account)

        accountData = jsonable_encoder(account, exclude={"password"})
        logEvent(None, request_info, accountData)
        return accountData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.patch(
    "/account",
    tags=["Account"],
    response_model=AccountSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.UniqueViolation("")]
    ),
    description="""
    Updates the email address or the password of the current account.
    The password is hashed using Argon2 before storing.
    Logs the account update activity with the associated token.
    """,
)
async def update_account(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        account = session.query(Account).filter(Account.id == token.account_id).first()

        if fParam.email_id is not None:
            email_id = str(fParam.email_id).lower()
            if account.email_id != email_id:
                account.email_id = email_id
        if fParam.password is not None:
            account.password = argon2.makePassword(fParam.password)

        haveUpdates = session.is_modified(account)
        if haveUpdates:
            session.commit()
            session.refresh(account)

        accountData = jsonable_encoder(account, exclude={"password"})
        if haveUpdates:
            logEvent(token, request_info, accountData)
        return accountData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.delete(
    "/account",
    tags=["Account"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Deletes the current account permanently.
    Its tokens, profile, vendor, subscriptions and calls are removed with it.
    The deleted account details are logged for audit purposes.
    """,
)
async def delete_account(
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        account = session.query(Account).filter(Account.id == token.account_id).first()

        accountData = jsonable_encoder(account, exclude={"password"})
        session.delete(account)
        session.commit()
        logEvent(token, request_info, accountData)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_auth.get(
    "/account",
    tags=["Account"],
    response_model=AccountSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetch the account associated with the current token.
    """,
)
async def fetch_account(bearer=Depends(bearer_account)):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        return session.query(Account).filter(Account.id == token.account_id).first()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
