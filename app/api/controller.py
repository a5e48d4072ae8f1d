from fastapi import FastAPI
from app.api import (
    account,
    account_token,
    profile,
    vendor,
    subscription,
    call,
    realtime,
)
from app.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each caller kind
# ------------------------------------------------------
app_auth = FastAPI(title="Auth APP")
app_customer = FastAPI(title="Customer APP")
app_vendor = FastAPI(title="Vendor APP")

# Tag each app with its AppID
app_auth.state.id = AppID.AUTH
app_customer.state.id = AppID.CUSTOMER
app_vendor.state.id = AppID.VENDOR


# ------------------------------------------------------
# Auth routers
# ------------------------------------------------------
app_auth.include_router(account.route_auth)
app_auth.include_router(account_token.route_auth)


# ------------------------------------------------------
# Customer routers
# ------------------------------------------------------
app_customer.include_router(profile.route_profile)
app_customer.include_router(vendor.route_common)
app_customer.include_router(call.route_customer)
app_customer.include_router(realtime.route_common)


# ------------------------------------------------------
# Vendor routers
# ------------------------------------------------------
app_vendor.include_router(profile.route_profile)
app_vendor.include_router(vendor.route_common)
app_vendor.include_router(vendor.route_vendor)
app_vendor.include_router(subscription.route_vendor)
app_vendor.include_router(call.route_vendor)
app_vendor.include_router(realtime.route_common)
