from datetime import datetime, timezone
from enum import IntEnum
from uuid import UUID
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy import or_
from sqlalchemy.orm import Query as ORMQuery
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from app.api.bearer import bearer_account, bearer_vendor
from app.src.db import Vendor, sessionMaker
from app.src import exceptions, validators, getters, policies
from app.src.enums import ChangeEvent, Operation, OrderIn, Role
from app.src.loggers import logEvent
from app.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from app.src.functions import haversineDistance
from app.src.realtime import feed

route_common = APIRouter()
route_vendor = APIRouter()


## Output Schema
class VendorSchema(BaseModel):
    id: UUID
    profile_id: UUID
    business_name: str
    business_type: str
    description: Optional[str]
    is_active: bool
    latitude: Optional[float]
    longitude: Optional[float]
    location_updated_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


class VendorDistanceSchema(VendorSchema):
    distance: Optional[float] = None


## Input Forms
class CreateForm(BaseModel):
    business_name: str = Field(Form(min_length=1, max_length=64))
    business_type: str = Field(Form(min_length=1, max_length=32))
    description: str = Field(Form(max_length=512, default=""))
    latitude: float | None = Field(Form(ge=-90, le=90, default=None))
    longitude: float | None = Field(Form(ge=-180, le=180, default=None))


class UpdateForm(BaseModel):
    id: UUID | None = Field(Form(default=None))
    business_name: str | None = Field(Form(min_length=1, max_length=64, default=None))
    business_type: str | None = Field(Form(min_length=1, max_length=32, default=None))
    description: str | None = Field(Form(max_length=512, default=None))
    is_active: bool | None = Field(Form(default=None))
    latitude: float | None = Field(Form(ge=-90, le=90, default=None))
    longitude: float | None = Field(Form(ge=-180, le=180, default=None))


## Query Parameters
class OrderBy(IntEnum):
    business_name = 1
    updated_on = 2
    created_on = 3


class QueryParams(BaseModel):
    profile_id: UUID | None = Field(Query(default=None))
    business_name: str | None = Field(Query(default=None))
    business_type: str | None = Field(Query(default=None))
    search: str | None = Field(
        Query(default=None, description="Matches business name or type")
    )
    is_active: bool | None = Field(Query(default=None))
    located: bool | None = Field(
        Query(default=None, description="Whether both coordinates are known")
    )
    # Distance based
    latitude: float | None = Field(Query(ge=-90, le=90, default=None))
    longitude: float | None = Field(Query(ge=-180, le=180, default=None))
    radius: float | None = Field(
        Query(gt=0, default=None, description="Maximum distance in km")
    )
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
def withDistance(vendor: Vendor, latitude: float, longitude: float) -> dict:
    vendorData = jsonable_encoder(vendor)
    if vendor.latitude is None or vendor.longitude is None:
        vendorData["distance"] = None
    else:
        vendorData["distance"] = haversineDistance(
            latitude, longitude, vendor.latitude, vendor.longitude
        )
    return vendorData


def searchVendor(query: ORMQuery, qParam: QueryParams) -> List[Vendor | dict]:
    # Filters
    if qParam.profile_id is not None:
        query = query.filter(Vendor.profile_id == qParam.profile_id)
    if qParam.business_name is not None:
        query = query.filter(Vendor.business_name.ilike(f"%{qParam.business_name}%"))
    if qParam.business_type is not None:
        query = query.filter(Vendor.business_type.ilike(f"%{qParam.business_type}%"))
    if qParam.search is not None:
        query = query.filter(
            or_(
                Vendor.business_name.ilike(f"%{qParam.search}%"),
                Vendor.business_type.ilike(f"%{qParam.search}%"),
            )
        )
    if qParam.is_active is not None:
        query = query.filter(Vendor.is_active == qParam.is_active)
    if qParam.located is True:
        query = query.filter(Vendor.latitude.is_not(None), Vendor.longitude.is_not(None))
    if qParam.located is False:
        query = query.filter(or_(Vendor.latitude.is_(None), Vendor.longitude.is_(None)))
    # id based
    if qParam.id is not None:
        query = query.filter(Vendor.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Vendor.id.in_(qParam.id_list))
    # updated_on based
    if qParam.updated_on_ge is not None:
        query = query.filter(Vendor.updated_on >= qParam.updated_on_ge)
    if qParam.updated_on_le is not None:
        query = query.filter(Vendor.updated_on <= qParam.updated_on_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Vendor.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Vendor.created_on <= qParam.created_on_le)

    # Distance from a reference point, nearest first, unlocated vendors last
    if validators.coordinatePair(qParam.latitude, qParam.longitude):
        vendors = [
            withDistance(vendor, qParam.latitude, qParam.longitude)
            for vendor in query.all()
        ]
        if qParam.radius is not None:
            vendors = [
                v
                for v in vendors
                if v["distance"] is not None and v["distance"] <= qParam.radius
            ]
        vendors.sort(key=lambda v: (v["distance"] is None, v["distance"] or 0.0))
        return vendors[qParam.offset : qParam.offset + qParam.limit]
    if qParam.radius is not None:
        raise exceptions.MissingParameter(Vendor.latitude)

    # Ordering
    orderingAttribute = getattr(Vendor, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def updateVendor(session, vendor: Vendor, fParam: UpdateForm):
    located = validators.coordinatePair(fParam.latitude, fParam.longitude)
    if fParam.is_active is True:
        if not located:
            raise exceptions.MissingParameter(Vendor.latitude)
        validators.coveringSubscription(session, vendor.id)

    updateIfChanged(
        vendor,
        fParam,
        [
            Vendor.business_name.key,
            Vendor.business_type.key,
            Vendor.description.key,
            Vendor.is_active.key,
        ],
    )
    # The pair and its timestamp are always written together
    if located:
        vendor.latitude = fParam.latitude
        vendor.longitude = fParam.longitude
        vendor.location_updated_on = datetime.now(timezone.utc)


## API endpoints [Customer, Vendor]
@route_common.get(
    "/vendor",
    tags=["Vendor"],
    response_model=List[VendorDistanceSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.MissingParameter(Vendor.latitude)]
    ),
    description="""
    Fetch vendors with filtering, sorting, and pagination.
    Every authenticated account may read every vendor.
    Filter by owner, name, type, free text `search`, availability and whether the vendor is `located`.
    When a reference `latitude` and `longitude` are given, each vendor is annotated with its
    straight-line `distance` in km and the result is sorted nearest first, optionally limited to a `radius`.
    Otherwise sort by name, creation date, or update date in ascending or descending order.
    """,
)
async def fetch_vendor(qParam: QueryParams = Depends(), bearer=Depends(bearer_account)):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        query = policies.readable(session, Vendor, token.account_id)
        return searchVendor(query, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Vendor]
@route_vendor.post(
    "/vendor",
    tags=["Vendor"],
    response_model=VendorSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.UniqueViolation,
            exceptions.MissingParameter(Vendor.latitude),
        ]
    ),
    description="""
    Registers the business of the current vendor profile, in inactive state.
    A profile owns at most one vendor.
    An initial location may be given, latitude and longitude must come together.
    Logs the vendor creation activity with the associated token.
    """,
)
async def create_vendor(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.VENDOR)

        vendor = Vendor(
            profile_id=token.account_id,
            business_name=fParam.business_name,
            business_type=fParam.business_type,
            description=fParam.description,
        )
        if validators.coordinatePair(fParam.latitude, fParam.longitude):
            vendor.latitude = fParam.latitude
            vendor.longitude = fParam.longitude
            vendor.location_updated_on = datetime.now(timezone.utc)
        policies.authorize(session, Operation.INSERT, token.account_id, vendor)
        session.add(vendor)
        session.commit()
        session.refresh(vendor)

        logEvent(token, request_info, jsonable_encoder(vendor))
        await feed.publish(session, "vendor", ChangeEvent.INSERT, vendor)
        return vendor
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    "/vendor",
    tags=["Vendor"],
    response_model=VendorSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter(Vendor.latitude),
            exceptions.SubscriptionRequired,
        ]
    ),
    description="""
    Updates the business details, availability or location of a vendor.
    If no ID is provided the vendor of the current profile is updated.
    Only the owning profile may update a vendor.

    - Going online (`is_active=true`) requires `latitude` and `longitude` in the same request
      and an ACTIVE subscription whose end date is today or later.
    - Going offline only clears the flag, the last known location is kept.
    - Coordinates may be sent alone for live tracking, always as a pair. The pair and
      `location_updated_on` are written together, the last write wins.
    - Logs the vendor update activity with the associated token.
    """,
)
async def update_vendor(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.VENDOR)

        query = policies.readable(session, Vendor, token.account_id)
        if fParam.id is None:
            vendor = query.filter(Vendor.profile_id == token.account_id).first()
        else:
            vendor = query.filter(Vendor.id == fParam.id).first()
        if vendor is None:
            raise exceptions.InvalidIdentifier()
        policies.authorize(session, Operation.UPDATE, token.account_id, vendor)

        updateVendor(session, vendor, fParam)
        haveUpdates = session.is_modified(vendor)
        if haveUpdates:
            session.commit()
            session.refresh(vendor)

        vendorData = jsonable_encoder(vendor)
        if haveUpdates:
            logEvent(token, request_info, vendorData)
            await feed.publish(session, "vendor", ChangeEvent.UPDATE, vendor)
        return vendorData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
