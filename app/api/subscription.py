from datetime import date, datetime, timezone
from enum import IntEnum
from uuid import UUID
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status, Form
from sqlalchemy import and_, or_
from sqlalchemy.orm import Query as ORMQuery
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from app.api.bearer import bearer_vendor
from app.src.constants import SUBSCRIPTION_FEE, SUBSCRIPTION_PERIOD
from app.src.db import Subscription, Vendor, sessionMaker
from app.src import exceptions, validators, getters, policies
from app.src.enums import ChangeEvent, Operation, OrderIn, Role, SubscriptionStatus
from app.src.loggers import logEvent
from app.src.functions import enumStr, makeExceptionResponses, addMonths, today
from app.src.realtime import feed

route_vendor = APIRouter()

# Allowed status transitions, EXPIRED is terminal
SUBSCRIPTION_TRANSITIONS = {
    SubscriptionStatus.PENDING: [SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED],
    SubscriptionStatus.ACTIVE: [SubscriptionStatus.EXPIRED],
    SubscriptionStatus.EXPIRED: [],
}


## Output Schema
class SubscriptionSchema(BaseModel):
    id: UUID
    vendor_id: UUID
    start_date: date
    end_date: date
    amount: int
    status: int
    payment_date: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    vendor_id: UUID | None = Field(Form(default=None))
    start_date: date | None = Field(
        Form(default=None, description="Defaults to today")
    )
    end_date: date | None = Field(
        Form(default=None, description="Defaults to one period after the start date")
    )
    amount: int = Field(Form(ge=0, default=SUBSCRIPTION_FEE))
    status: SubscriptionStatus = Field(
        Form(description=enumStr(SubscriptionStatus), default=SubscriptionStatus.PENDING)
    )
    payment_date: datetime | None = Field(Form(default=None))


class UpdateForm(BaseModel):
    id: UUID = Field(Form())
    status: SubscriptionStatus | None = Field(
        Form(description=enumStr(SubscriptionStatus), default=None)
    )
    payment_date: datetime | None = Field(Form(default=None))


## Query Parameters
class OrderBy(IntEnum):
    start_date = 1
    end_date = 2
    created_on = 3


class QueryParams(BaseModel):
    vendor_id: UUID | None = Field(Query(default=None))
    status: SubscriptionStatus | None = Field(
        Query(default=None, description=enumStr(SubscriptionStatus))
    )
    covering: bool | None = Field(
        Query(default=None, description="ACTIVE and ending today or later")
    )
    # id based
    id: UUID | None = Field(Query(default=None))
    id_list: List[UUID] | None = Field(Query(default=None))
    # date based
    start_date_ge: date | None = Field(Query(default=None))
    start_date_le: date | None = Field(Query(default=None))
    end_date_ge: date | None = Field(Query(default=None))
    end_date_le: date | None = Field(Query(default=None))
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
def searchSubscription(query: ORMQuery, qParam: QueryParams) -> List[Subscription]:
    # Filters
    if qParam.vendor_id is not None:
        query = query.filter(Subscription.vendor_id == qParam.vendor_id)
    if qParam.status is not None:
        query = query.filter(Subscription.status == qParam.status)
    if qParam.covering is not None:
        isCovering = and_(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date >= today(),
        )
        if qParam.covering:
            query = query.filter(isCovering)
        else:
            query = query.filter(
                or_(
                    Subscription.status != SubscriptionStatus.ACTIVE,
                    Subscription.end_date < today(),
                )
            )
    # id based
    if qParam.id is not None:
        query = query.filter(Subscription.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Subscription.id.in_(qParam.id_list))
    # date based
    if qParam.start_date_ge is not None:
        query = query.filter(Subscription.start_date >= qParam.start_date_ge)
    if qParam.start_date_le is not None:
        query = query.filter(Subscription.start_date <= qParam.start_date_le)
    if qParam.end_date_ge is not None:
        query = query.filter(Subscription.end_date >= qParam.end_date_ge)
    if qParam.end_date_le is not None:
        query = query.filter(Subscription.end_date <= qParam.end_date_le)
    # created_on based
    if qParam.created_on_ge is not None:
        query = query.filter(Subscription.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Subscription.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Subscription, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Vendor]
@route_vendor.post(
    "/vendor/subscription",
    tags=["Subscription"],
    response_model=SubscriptionSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.UnknownValue(Subscription.vendor_id),
            exceptions.InvalidValue(Subscription.end_date),
            exceptions.InvalidValue(Subscription.status),
        ]
    ),
    description="""
    Records a subscription period for a vendor owned by the current profile.
    If no vendor ID is provided the vendor of the current profile is used.

    - `start_date` defaults to today, `end_date` to one month after the start date.
    - `amount` defaults to 5000 and `status` to PENDING.
    - A subscription may not be recorded as EXPIRED.
    - The client reported payment is trusted, no payment provider is contacted.
    - Logs the subscription creation activity with the associated token.
    """,
)
async def create_subscription(
    fParam: CreateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.VENDOR)

        query = policies.readable(session, Vendor, token.account_id)
        if fParam.vendor_id is None:
            vendor = query.filter(Vendor.profile_id == token.account_id).first()
        else:
            vendor = query.filter(Vendor.id == fParam.vendor_id).first()
        if vendor is None:
            raise exceptions.UnknownValue(Subscription.vendor_id)
        if fParam.status == SubscriptionStatus.EXPIRED:
            raise exceptions.InvalidValue(Subscription.status)

        start_date = fParam.start_date or today()
        end_date = fParam.end_date or addMonths(start_date, SUBSCRIPTION_PERIOD)
        if end_date < start_date:
            raise exceptions.InvalidValue(Subscription.end_date)
        payment_date = fParam.payment_date
        if payment_date is None and fParam.status == SubscriptionStatus.ACTIVE:
            payment_date = datetime.now(timezone.utc)

        subscription = Subscription(
            vendor_id=vendor.id,
            start_date=start_date,
            end_date=end_date,
            amount=fParam.amount,
            status=fParam.status,
            payment_date=payment_date,
        )
        policies.authorize(session, Operation.INSERT, token.account_id, subscription)
        session.add(subscription)
        session.commit()
        session.refresh(subscription)

        logEvent(token, request_info, jsonable_encoder(subscription))
        await feed.publish(session, "subscription", ChangeEvent.INSERT, subscription)
        return subscription
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.patch(
    "/vendor/subscription",
    tags=["Subscription"],
    response_model=SubscriptionSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition(Subscription.status),
        ]
    ),
    description="""
    Updates the status or the payment date of a subscription of the current profile.

    - Allowed status changes are PENDING to ACTIVE or EXPIRED, and ACTIVE to EXPIRED.
    - Activating without a payment date records the current time as the payment date.
    - Requesting the current status again changes nothing.
    - A subscription of a vendor owned by another profile is reported as not found
      (`InvalidIdentifier`), so the existence of other vendors' rows is never revealed.
    - Logs the subscription update activity with the associated token.
    """,
)
async def update_subscription(
    fParam: UpdateForm = Depends(),
    bearer=Depends(bearer_vendor),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)
        profile = getters.profile(token, session)
        validators.role(profile, Role.VENDOR)

        subscription = (
            policies.readable(session, Subscription, token.account_id)
            .filter(Subscription.id == fParam.id)
            .first()
        )
        if subscription is None:
            raise exceptions.InvalidIdentifier()
        policies.authorize(session, Operation.UPDATE, token.account_id, subscription)

        if fParam.status is not None and subscription.status != fParam.status:
            validators.stateTransition(
                SUBSCRIPTION_TRANSITIONS,
                subscription.status,
                fParam.status,
                Subscription.status,
            )
            subscription.status = fParam.status
            if fParam.status == SubscriptionStatus.ACTIVE:
                if fParam.payment_date is None and subscription.payment_date is None:
                    subscription.payment_date = datetime.now(timezone.utc)
        if fParam.payment_date is not None:
            subscription.payment_date = fParam.payment_date

        haveUpdates = session.is_modified(subscription)
        if haveUpdates:
            session.commit()
            session.refresh(subscription)

        subscriptionData = jsonable_encoder(subscription)
        if haveUpdates:
            logEvent(token, request_info, subscriptionData)
            await feed.publish(
                session, "subscription", ChangeEvent.UPDATE, subscription
            )
        return subscriptionData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_vendor.get(
    "/vendor/subscription",
    tags=["Subscription"],
    response_model=List[SubscriptionSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetch the subscriptions of vendors owned by the current profile.
    Subscriptions of other vendors are never returned.
    Filter by vendor, status, whether the subscription is `covering` today and by date ranges.
    Sort by start date, end date, or creation date in ascending or descending order.
    """,
)
async def fetch_subscription(
    qParam: QueryParams = Depends(), bearer=Depends(bearer_vendor)
):
    try:
        session = sessionMaker()
        token = validators.accountToken(bearer.credentials, session)

        query = policies.readable(session, Subscription, token.account_id)
        return searchSubscription(query, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
