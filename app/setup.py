import argparse
from http import HTTPStatus
from requests import get, patch, post

from app.src.urls import (
    URL_AUTH_APP,
    URL_CUSTOMER_APP,
    URL_VENDOR_APP,
    URL_ACCOUNT,
    URL_ACCOUNT_TOKEN,
    URL_PROFILE,
    URL_VENDOR,
    URL_SUBSCRIPTION,
    URL_CALL,
)
from app.src.enums import SubscriptionStatus, CallStatus
from app.src.db import sessionMaker, engine, ORMbase

BASE_URL = "http://localhost:8080"


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


# ----------------------------------- Test Data -----------------------------------------------#
def POST(url, header=None, data=None, status_code=HTTPStatus.OK):
    response = post(url, headers=header, data=data)
    if response.status_code != status_code:
        raise RuntimeError(f"POST {url} failed: {response.status_code} {response.text}")
    return response


def PATCH(url, header=None, data=None, status_code=HTTPStatus.OK):
    response = patch(url, headers=header, data=data)
    if response.status_code != status_code:
        raise RuntimeError(f"PATCH {url} failed: {response.status_code} {response.text}")
    return response


def signUp(email_id: str, full_name: str, appURL: str) -> dict:
    credentials = {"email_id": email_id, "password": "password"}
    POST(BASE_URL + URL_AUTH_APP + URL_ACCOUNT, data=credentials, status_code=201)
    token = POST(
        BASE_URL + URL_AUTH_APP + URL_ACCOUNT_TOKEN, data=credentials, status_code=201
    )
    header = {"Authorization": f"Bearer {token.json()['access_token']}"}
    POST(
        BASE_URL + appURL + URL_PROFILE,
        header=header,
        data={"full_name": full_name},
        status_code=201,
    )
    return header


def testDB():
    health = get(BASE_URL + "/health")
    if health.status_code != HTTPStatus.OK:
        raise RuntimeError("The server is not reachable on " + BASE_URL)

    # Vendor with an active subscription, online in Jakarta
    vendorHeader = signUp("warung@umkm.id", "Bu Sari", URL_VENDOR_APP)
    vendorData = {
        "business_name": "Warung Bu Sari",
        "business_type": "Makanan",
        "description": "Nasi uduk dan gorengan",
    }
    vendor = POST(
        BASE_URL + URL_VENDOR_APP + URL_VENDOR,
        header=vendorHeader,
        data=vendorData,
        status_code=201,
    )
    print("* Created vendor")

    POST(
        BASE_URL + URL_VENDOR_APP + URL_SUBSCRIPTION,
        header=vendorHeader,
        data={"status": int(SubscriptionStatus.ACTIVE)},
        status_code=201,
    )
    print("* Created subscription")

    PATCH(
        BASE_URL + URL_VENDOR_APP + URL_VENDOR,
        header=vendorHeader,
        data={"is_active": "true", "latitude": -6.21, "longitude": 106.82},
    )
    print("* Vendor is online")

    # Customer calling the vendor
    customerHeader = signUp("pelanggan@umkm.id", "Budi", URL_CUSTOMER_APP)
    callData = {
        "vendor_id": vendor.json()["id"],
        "latitude": -6.2,
        "longitude": 106.816666,
    }
    call = POST(
        BASE_URL + URL_CUSTOMER_APP + URL_CALL,
        header=customerHeader,
        data=callData,
        status_code=201,
    )
    print("* Created call")

    PATCH(
        BASE_URL + URL_VENDOR_APP + URL_CALL,
        header=vendorHeader,
        data={"id": call.json()["id"], "status": int(CallStatus.ACKNOWLEDGED)},
    )
    print("* Acknowledged call")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.rm:
        removeTables()
    if args.cr:
        createTables()
    if args.test:
        testDB()
