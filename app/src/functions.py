from calendar import monthrange
from datetime import date, datetime
from math import asin, cos, radians, sin, sqrt
from typing import List, Dict, Any

from app.src import schemas
from app.src.constants import EARTH_RADIUS, TMZ_SECONDARY
from app.src.exceptions import APIException


def makeExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException classes or instances.

    Args:
        exceptions (List[APIException]): Exception classes without constructor
            arguments, or instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        if isinstance(exception, type):
            example_key = exception.__name__
        else:
            example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(CallStatus)
        'PENDING: 1, ACKNOWLEDGED: 2, COMPLETED: 3'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    CallStatus.PENDING: [CallStatus.ACKNOWLEDGED],
                    CallStatus.ACKNOWLEDGED: [CallStatus.COMPLETED],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def haversineDistance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two WGS84 coordinates, in kilometers.

    Uses the haversine formula on a sphere of radius `EARTH_RADIUS`.
    The result is symmetric and zero for identical points.

    Example:
        >>> round(haversineDistance(-6.2, 106.816666, -6.21, 106.82), 3)
        1.171
    """
    dLat = radians(lat2 - lat1)
    dLon = radians(lon2 - lon1)
    a = sin(dLat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dLon / 2) ** 2
    # Clamp rounding noise for antipodal points
    return 2 * EARTH_RADIUS * asin(sqrt(min(1.0, a)))


def today() -> date:
    """Current calendar date in the service timezone."""
    return datetime.now(TMZ_SECONDARY).date()


def addMonths(day: date, months: int) -> date:
    """
    Shift a date by whole calendar months, clamping to the last day of the month.

    Example:
        >>> addMonths(date(2026, 1, 31), 1)
        datetime.date(2026, 2, 28)
    """
    monthIndex = day.month - 1 + months
    year = day.year + monthIndex // 12
    month = monthIndex % 12 + 1
    return date(year, month, min(day.day, monthrange(year, month)[1]))


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     vendor,
        ...     fParam,
        ...     [
        ...         Vendor.business_name.key,
        ...         Vendor.description.key,
        ...     ],
        ... )
        # vendor will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)

