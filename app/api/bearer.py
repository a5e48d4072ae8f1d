from fastapi.security import HTTPBearer

# Define HTTP Bearer authentication schemes for the account and each caller kind
bearer_account = HTTPBearer(scheme_name="Account HTTPBearer")
bearer_customer = HTTPBearer(scheme_name="Customer HTTPBearer")
bearer_vendor = HTTPBearer(scheme_name="Vendor HTTPBearer")
