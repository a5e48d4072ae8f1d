import json, requests
from requests import Response
from requests.auth import HTTPBasicAuth

from app.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_TIMEOUT,
    OPENOBSERVE_USERNAME,
)

# Shared HTTP session, keeps the connection to OpenObserve alive between events
client = requests.Session()
client.auth = HTTPBasicAuth(OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)
client.headers.update({"Content-type": "application/json"})

openobserve_host = f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
openobserve_url = f"{openobserve_host}/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"


def logEvent(eventData: dict) -> Response:
    """
    Send an audit event to the configured OpenObserve stream.

    The event is serialized as a single element JSON array, the format
    accepted by the `_json` ingestion endpoint.

    Args:
        eventData (dict): A JSON compatible dictionary.
            Example:
                {
                    "_method": "PATCH",
                    "_path": "/vendor/vendor/call",
                    "_app_id": 3,
                    "_account_id": "5b0f6c1e-8d7a-4a43-9d1e-0c2b1f4a9e21",
                    "status": 2
                }

    Returns:
        requests.Response: The HTTP response object returned by the OpenObserve API.
    """
    return client.post(
        openobserve_url, data=json.dumps([eventData]), timeout=OPENOBSERVE_TIMEOUT
    )
