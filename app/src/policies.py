"""
Row level authorization for UMKM Call Server.

Every table carries one policy object describing which rows an
authenticated profile may read, insert and update. Reads are expressed as
SQLAlchemy clauses so listings are filtered inside the database, writes are
checked on the ORM object before the session is committed.

Usage:
    - `readable()` to start a query restricted to the caller's visible rows.
    - `authorize()` before committing a new or modified row.
    - `visible()` to decide whether a row may be shown to a listener.
"""

from uuid import UUID
from sqlalchemy import or_, select, true
from sqlalchemy.orm import Query
from sqlalchemy.orm.session import Session

from app.src.db import Call, Profile, Subscription, Vendor
from app.src.enums import Operation
from app.src import exceptions


def ownedVendors(callerId: UUID):
    """Sub-query yielding the ids of vendors owned by the caller."""
    return select(Vendor.id).where(Vendor.profile_id == callerId)


def ownsVendor(session: Session, callerId: UUID, vendor_id: UUID) -> bool:
    return (
        session.query(Vendor.id)
        .filter(Vendor.id == vendor_id, Vendor.profile_id == callerId)
        .first()
        is not None
    )


# ---------------------------------------------------------------------------
# Table policies
# ---------------------------------------------------------------------------
class Policy:
    """
    Predicates of one table. Update checks apply to both the row being
    modified and its new values, so a single predicate serves both.
    """

    model = None

    def select(self, callerId: UUID):
        return true()

    def visible(self, session: Session, callerId: UUID, row) -> bool:
        return True

    def insert(self, session: Session, callerId: UUID, row) -> bool:
        return False

    def update(self, session: Session, callerId: UUID, row) -> bool:
        return False


class ProfilePolicy(Policy):
    model = Profile

    def insert(self, session, callerId, row):
        return row.id == callerId

    def update(self, session, callerId, row):
        return row.id == callerId


class VendorPolicy(Policy):
    model = Vendor

    def insert(self, session, callerId, row):
        return row.profile_id == callerId

    def update(self, session, callerId, row):
        return row.profile_id == callerId


class SubscriptionPolicy(Policy):
    model = Subscription

    def select(self, callerId):
        return Subscription.vendor_id.in_(ownedVendors(callerId))

    def visible(self, session, callerId, row):
        return ownsVendor(session, callerId, row.vendor_id)

    def insert(self, session, callerId, row):
        return ownsVendor(session, callerId, row.vendor_id)

    def update(self, session, callerId, row):
        return ownsVendor(session, callerId, row.vendor_id)


class CallPolicy(Policy):
    model = Call

    def select(self, callerId):
        return or_(
            Call.customer_id == callerId,
            Call.vendor_id.in_(ownedVendors(callerId)),
        )

    def visible(self, session, callerId, row):
        return row.customer_id == callerId or ownsVendor(
            session, callerId, row.vendor_id
        )

    def insert(self, session, callerId, row):
        return row.customer_id == callerId

    def update(self, session, callerId, row):
        return ownsVendor(session, callerId, row.vendor_id)


POLICIES = {
    Profile: ProfilePolicy(),
    Vendor: VendorPolicy(),
    Subscription: SubscriptionPolicy(),
    Call: CallPolicy(),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def readable(session: Session, model, callerId: UUID) -> Query:
    """
    Start a query on `model` restricted by its select policy.

    Rows outside the policy are silently left out, reads never raise.
    """
    return session.query(model).filter(POLICIES[model].select(callerId))


def visible(session: Session, callerId: UUID, row) -> bool:
    return POLICIES[type(row)].visible(session, callerId, row)


def permits(session: Session, operation: Operation, callerId: UUID, row) -> bool:
    """Evaluate the policy of `row`'s table for the given operation."""
    policy = POLICIES[type(row)]
    if operation == Operation.SELECT:
        return policy.visible(session, callerId, row)
    if operation == Operation.INSERT:
        return policy.insert(session, callerId, row)
    if operation == Operation.UPDATE:
        return policy.update(session, callerId, row)
    return False


def authorize(session: Session, operation: Operation, callerId: UUID, row) -> bool:
    """
    Enforce the policy of `row`'s table for a write.

    Raises:
        exceptions.NoPermission: If the predicate rejects the row.
            The caller must not commit the session afterwards.
    """
    if not permits(session, operation, callerId, row):
        raise exceptions.NoPermission()
    return True
