from datetime import datetime
from enum import IntEnum
from uuid import UUID
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm import Query as ORMQuery
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from pydantic_extra_types.phone_numbers import PhoneNumber

from app.api.bearer import bearer_account
from app.src.db import Profile, sessionMaker
from app.src import exceptions, validators, getters, policies
from app.src.enums import ChangeEvent, Operation, OrderIn, Role
from app.src.loggers import logEvent
from app.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from app.src.realtime import feed

route_profile = APIRouter()


## Output Schema
class ProfileSchema(BaseModel):
    id: UUID
    full_name: str
    phone_number: Optional[str]
    role: int
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    full_name: str = Field(Form(min_length=1, max_length=32))
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )


class UpdateForm(BaseModel):
    id: UUID | None = Field(Form(default=None))
    full_name: str | None = Field(Form(min_length=1, max_length=32, default=None))
    phone_number: PhoneNumber | None = Field(
        Form(max_length=32, default=None, description="Phone number in RFC3966 format")
    )


## Query Parameters
class OrderBy(IntEnum):
    full_name = 1
    updated_on = 2
    created_on = 3


class QueryParams(BaseModel):
    full_name: str | None = Field(Query(default=None))
    phone_number: str | None = Field(Query(default=None))
    role: Role | None = Field(Query(default=None, description=enumStr(Role)))
    # id based
    id: UUID | None = Field(Query(default=None))
    id_list: List[UUID] | None = Field(Query(default=None))
    # updated_on based
    updated_on_ge: datetime | None = Field(Query(default=None))
    updated_on_le: datetime | None = Field(Query(default=None))
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
def searchProfile(query: ORMQuery, qParam: QueryParams) -> List[Profile]:
    # Filters
    if qParam.full_name is not None:
        query = query.filter(Profile.full_name.ilike(f"%{qParam.full_name}%"))
    if qParam.phone_number is not None:
        query = query.filter(Profile.phone_number.ilike(f"%{qParam.phone_number}%"))
    if qParam.role is not None:
        query = query.filter(Profile.role == qParam.role)
    # id based
    if qParam.id is not None:
        query = query.filter(Profile.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Profile.id.in_(qParam.id_list))
    # updated_on based
    if qParam.updated_on_ge is not None:
        query = query.filter(Profile.updated_on >= qParam.updated_on_ge)
    if qParam.updated_on_le is not None:
        query = query.filter(Profile.updated_on <= qParam.updated_on_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Profile.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Profile.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Profile, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Customer, Vendor]
@route_profile.post(
    "/account/profile",
    tags=["Profile"],
    response_model=ProfileSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.UniqueViolation]
    ),
    description="""
    Creates the profile of the current account.
    The role is taken from the app used, `/customer` creates a CUSTOMER
    profile and `/vendor` a VENDOR profile. It can never be changed afterwards.
    An account has at most one profile.
    Logs the profile creation activity with the associated token.
    """,
)
async def create_profile(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        profile = Profile(
            id=token.account_id,
            full_name=fParam.full_name,
            phone_number=fParam.phone_number,
            role=getters.appRole(request_info),
        )
        policies.authorize(session, Operation.INSERT, token.account_id, profile)
        session.add(profile)
        session.commit()
        session.refresh(profile)

        logEvent(token, request_info, jsonable_encoder(profile))
        await feed.publish(session, "profile", ChangeEvent.INSERT, profile)
        return profile
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_profile.patch(
    "/account/profile",
    tags=["Profile"],
    response_model=ProfileSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.NoPermission, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates the name or the phone number of a profile.
    If no ID is provided the profile of the current account is updated.
    Only the owner of a profile may update it, the role is never updatable.
    The `updated_on` timestamp is refreshed on every update.
    Logs the profile update activity with the associated token.
    """,
)
async def update_profile(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_account),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        if fParam.id is None:
            fParam.id = token.account_id

        profile = (
            policies.readable(session, Profile, token.account_id)
            .filter(Profile.id == fParam.id)
            .first()
        )
        if profile is None:
            raise exceptions.InvalidIdentifier()
        policies.authorize(session, Operation.UPDATE, token.account_id, profile)
        validators.role(profile, getters.appRole(request_info))

        updateIfChanged(
            profile, fParam, [Profile.full_name.key, Profile.phone_number.key]
        )
        haveUpdates = session.is_modified(profile)
        if haveUpdates:
            session.commit()
            session.refresh(profile)

        profileData = jsonable_encoder(profile)
        if haveUpdates:
            logEvent(token, request_info, profileData)
            await feed.publish(session, "profile", ChangeEvent.UPDATE, profile)
        return profileData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_profile.get(
    "/account/profile",
    tags=["Profile"],
    response_model=List[ProfileSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetch profiles with filtering, sorting, and pagination.
    Every authenticated account may read every profile.
    Filter by name, phone number, role, ID list and creation/update timestamps.
    Sort by name, creation date, or update date in ascending or descending order.
    """,
)
async def fetch_profile(qParam: QueryParams = Depends(), bearer=Depends(bearer_account)):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        query = policies.readable(session, Profile, token.account_id)
        return searchProfile(query, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
