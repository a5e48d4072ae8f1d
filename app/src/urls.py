"""
API Endpoint URL Constants

This module defines the URL paths of every resource served by the
`/auth`, `/customer` and `/vendor` applications.

These URLs are relative to the mounted application, prefix them with
the application mount point (e.g. `/customer`) when making requests.
"""

# -------------------------------
# Application mount points
# -------------------------------
URL_AUTH_APP = "/auth"
URL_CUSTOMER_APP = "/customer"
URL_VENDOR_APP = "/vendor"

# -------------------------------
# Authentication & Tokens
# -------------------------------
URL_ACCOUNT = "/account"
URL_ACCOUNT_TOKEN = "/account/token"

# -------------------------------
# Marketplace
# -------------------------------
URL_PROFILE = "/account/profile"
URL_VENDOR = "/vendor"
URL_SUBSCRIPTION = "/vendor/subscription"
URL_CALL = "/vendor/call"

# -------------------------------
# Realtime
# -------------------------------
URL_REALTIME = "/realtime/{table}"
