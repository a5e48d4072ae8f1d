from datetime import datetime, timezone
from enum import IntEnum
from uuid import UUID
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy.orm import Query as ORMQuery
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from app.api.bearer import bearer_customer, bearer_vendor
from app.src.db import Call, Vendor, sessionMaker
from app.src import exceptions, validators, getters, policies
from app.src.enums import CallStatus, ChangeEvent, Operation, OrderIn, Role
from app.src.loggers import logEvent
from app.src.functions import enumStr, makeExceptionResponses
from app.src.realtime import feed

route_customer = APIRouter()
route_vendor = APIRouter()

# Allowed status transitions, a call only moves forward
CALL_TRANSITIONS = {
    CallStatus.PENDING: [CallStatus.ACKNOWLEDGED, CallStatus.COMPLETED],
    CallStatus.ACKNOWLEDGED: [CallStatus.COMPLETED],
    CallStatus.COMPLETED: [],
}


## Output Schema
class CallSchema(BaseModel):
    id: UUID
    customer_id: UUID
    vendor_id: UUID
    latitude: float
    longitude: float
    status: int
    created_on: datetime
    acknowledged_on: Optional[datetime]
    completed_on: Optional[datetime]


## Input Forms
class CreateForm(BaseModel):
    vendor_id: UUID = Field(Form())
    latitude: float = Field(Form(ge=-90, le=90))
    longitude: float = Field(Form(ge=-180, le=180))


class UpdateForm(BaseModel):
    id: UUID = Field(Form())
    status: CallStatus = Field(Form(description=enumStr(CallStatus)))


## Query Parameters
class OrderBy(IntEnum):
    created_on = 1
    acknowledged_on = 2
    completed_on = 3


class QueryParams(BaseModel):
    status: CallStatus | None = Field(
        Query(default=None, description=enumStr(CallStatus))
    )
    status_list: List[CallStatus] | None = Field(
        Query(default=None, description=enumStr(CallStatus))
    )
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


class QueryParamsForCU(QueryParams):
    vendor_id: UUID | None = Field(Query(default=None))


class QueryParamsForVE(QueryParams):
    customer_id: UUID | None = Field(Query(default=None))


## Function
def searchCall(
    query: ORMQuery, qParam: QueryParamsForCU | QueryParamsForVE
) -> List[Call]:
    # Filters
    if getattr(qParam, "vendor_id", None) is not None:
        query = query.filter(Call.vendor_id == qParam.vendor_id)
    if getattr(qParam, "customer_id", None) is not None:
        query = query.filter(Call.customer_id == qParam.customer_id)
    if qParam.status is not None:
        query = query.filter(Call.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Call.status.in_(qParam.status_list))
    # id based
    if qParam.id is not None:
        query = query.filter(Call.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Call.id.in_(qParam.id_list))
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Call.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Call.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Call, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


def transitionCall(session, call: Call, newStatus: CallStatus) -> bool:
    """
    Move a call forward with a compare-and-set update.

    The row is only written while its stored status is still lower than
    `newStatus`, so concurrent requests for the same step produce one write
    and a stale request can never move a call backwards.

    Returns:
        bool: True if this request performed the write.
    """
    values = {Call.status: int(newStatus)}
    now = datetime.now(timezone.utc)
    if newStatus == CallStatus.ACKNOWLEDGED:
        values[Call.acknowledged_on] = now
    if newStatus == CallStatus.COMPLETED:
        values[Call.completed_on] = now

    updated = (
        session.query(Call)
        .filter(Call.id == call.id, Call.status < int(newStatus))
        .update(values, synchronize_session=False)
    )
    return updated > 0


## API endpoints [Customer]
@route_customer.post(
    "/vendor/call",
    tags=["Call"],
    response_model=CallSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.UnknownValue(Call.vendor_id),
            exceptions.InactiveResource(Vendor),
        ]
    ),
    description="""
    Places a call asking a vendor to come to the customer's location.

    - Only customer profiles may place calls, always on their own behalf.
    - The vendor must be online and covered by an ACTIVE subscription.
    - The call starts in PENDING status.
    - Listeners of the owning vendor are notified through the realtime feed.
    - Logs the call creation activity with the associated token.
    """,
)
async def create_call(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.CUSTOMER)

        vendor = (
            policies.readable(session, Vendor, token.account_id)
            .filter(Vendor.id == fParam.vendor_id)
            .first()
        )
        if vendor is None:
            raise exceptions.UnknownValue(Call.vendor_id)
        if not vendor.is_active or not validators.hasCoveringSubscription(
            session, vendor.id
        ):
            raise exceptions.InactiveResource(Vendor)

        call = Call(
            customer_id=token.account_id,
            vendor_id=vendor.id,
            latitude=fParam.latitude,
            longitude=fParam.longitude,
        )
        policies.authorize(session, Operation.INSERT, token.account_id, call)
        session.add(call)
        session.commit()
        session.refresh(call)

        logEvent(token, request_info, jsonable_encoder(call))
        await feed.publish(session, "call", ChangeEvent.INSERT, call)
        return call
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    "/vendor/call",
    tags=["Call"],
    response_model=List[CallSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetch the calls placed by the current profile.
    Filter by vendor, status, ID list and creation timestamps.
    Sort by creation, acknowledgement or completion time in ascending or descending order.
    """,
)
async def fetch_call(
    qParam: QueryParamsForCU = Depends(), bearer=Depends(bearer_customer)
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        query = policies.readable(session, Call, token.account_id).filter(
            Call.customer_id == token.account_id
        )
        return searchCall(query, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Vendor]
@route_vendor.patch(
    "/vendor/call",
    tags=["Call"],
    response_model=CallSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Call.status),
        ]
    ),
    description="""
    Moves a call made to the vendor of the current profile forward.

    - Allowed changes are PENDING to ACKNOWLEDGED or COMPLETED, and ACKNOWLEDGED to COMPLETED.
    - ACKNOWLEDGED records `acknowledged_on`, COMPLETED records `completed_on`.
    - Requesting the current status again changes nothing and returns the call.
    - Concurrent requests for the same step result in a single write, the others
      return the call as stored.
    - A call made to another vendor is reported as not found (`InvalidIdentifier`),
      so the existence of other vendors' calls is never revealed.
    - Logs the call update activity with the associated token.
    """,
)
async def update_call(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.VENDOR)

        call = (
            policies.readable(session, Call, token.account_id)
            .filter(Call.id == fParam.id)
            .first()
        )
        if call is None:
            raise exceptions.InvalidIdentifier()
        policies.authorize(session, Operation.UPDATE, token.account_id, call)

        if call.status == fParam.status:
            return call
        validators.stateTransition(
            CALL_TRANSITIONS, call.status, fParam.status, Call.status
        )

        haveUpdates = transitionCall(session, call, fParam.status)
        session.commit()
        session.refresh(call)

        callData = jsonable_encoder(call)
        if haveUpdates:
            logEvent(token, request_info, callData)
            await feed.publish(session, "call", ChangeEvent.UPDATE, call)
        return callData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    "/vendor/call",
    tags=["Call"],
    response_model=List[CallSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetch the calls made to the vendor of the current profile.
    Filter by customer, status, ID list and creation timestamps.
    Sort by creation, acknowledgement or completion time in ascending or descending order.
    """,
)
async def fetch_call(
    qParam: QueryParamsForVE = Depends(), bearer=Depends(bearer_vendor)
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        query = policies.readable(session, Call, token.account_id).filter(
            Call.vendor_id.in_(policies.ownedVendors(token.account_id))
        )
        return searchCall(query, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
