"""
Validation and permission checks for UMKM Call Server.

This module centralizes guard logic such as:
- Token validation
- Role checks for the customer and vendor apps
- Paired coordinate validation
- State transition enforcement
- Subscription coverage of a vendor

All functions raise appropriate exceptions from `app.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from typing import Any
from sqlalchemy import Column
from sqlalchemy.orm.session import Session

from app.src.db import AccountToken, Profile, Subscription, Vendor
from app.src.enums import Role, SubscriptionStatus
from app.src import exceptions
from app.src.functions import isValidTransition, today


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def accountToken(access_token: str, session: Session) -> AccountToken:
    """
    Validate an account access token.

    Args:
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        AccountToken: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found or has expired.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(AccountToken)
        .filter(
            AccountToken.access_token == access_token,
            AccountToken.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


# ---------------------------------------------------------------------------
# Role checks
# ---------------------------------------------------------------------------
def role(profile: Profile | None, expected: Role) -> bool:
    """
    Validate that the caller has a profile with the expected role.

    Raises:
        exceptions.NoPermission: If the profile is missing or has another role.
    """
    if profile is None or profile.role != expected:
        raise exceptions.NoPermission()
    return True


# ---------------------------------------------------------------------------
# Location validation
# ---------------------------------------------------------------------------
def coordinatePair(latitude: float | None, longitude: float | None) -> bool:
    """
    Validate that latitude and longitude are either both present or both absent.

    Returns:
        bool: True if a complete pair is provided, False if neither is.

    Raises:
        exceptions.MissingParameter: If only one half of the pair is provided.
    """
    if latitude is None and longitude is None:
        return False
    if latitude is None:
        raise exceptions.MissingParameter(Vendor.latitude)
    if longitude is None:
        raise exceptions.MissingParameter(Vendor.longitude)
    return True


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True


def hasCoveringSubscription(session: Session, vendor_id) -> bool:
    """Whether the vendor has an ACTIVE subscription ending today or later."""
    return (
        session.query(Subscription.id)
        .filter(
            Subscription.vendor_id == vendor_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date >= today(),
        )
        .first()
        is not None
    )


def coveringSubscription(session: Session, vendor_id) -> bool:
    """
    Validate that the vendor is covered by a subscription today.

    Raises:
        exceptions.SubscriptionRequired: If no covering subscription exists.
    """
    if not hasCoveringSubscription(session, vendor_id):
        raise exceptions.SubscriptionRequired()
    return True
