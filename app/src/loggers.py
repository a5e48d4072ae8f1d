from logging import getLogger
from requests import RequestException

from app.src.db import AccountToken
from app.src import openobserve
from app.src.schemas import RequestInfo


def logEvent(
    token: AccountToken | None,
    requestInfo: RequestInfo,
    data: dict,
) -> None:
    """
    Log an event to OpenObserve with request and user context.

    Args:
        token (AccountToken | None): Authenticated account token, None for
            anonymous requests such as sign up.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path` and `_account_id`.
        - Events are logged after the write is committed, so a failure to reach
          OpenObserve is reported to `uvicorn.error` and never raised.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }

    if token is not None:
        logDetails["_account_id"] = str(token.account_id)

    logDetails.update(data)
    try:
        openobserve.logEvent(logDetails)
    except RequestException as e:
        logger = getLogger("uvicorn.error")
        logger.error(
            "Audit event for %s %s not delivered: %s",
            requestInfo.method,
            requestInfo.path,
            e,
        )
