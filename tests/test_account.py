from uuid import UUID
from app.src.constants import MAX_ACCOUNT_TOKENS
from app.src.db import Account, AccountToken, Profile
from app.src.enums import AccountStatus, AppID
from app.src.urls import (
    URL_AUTH_APP,
    URL_CUSTOMER_APP,
    URL_ACCOUNT,
    URL_ACCOUNT_TOKEN,
    URL_PROFILE,
)

PASSWORD = "password"
ACCOUNT = URL_AUTH_APP + URL_ACCOUNT
TOKEN = URL_AUTH_APP + URL_ACCOUNT_TOKEN


def login(client, email_id, password=PASSWORD):
    return client.post(TOKEN, data={"email_id": email_id, "password": password})


class TestAccount:
    def test_sign_up(self, client, session, auditLog):
        response = client.post(
            ACCOUNT, data={"email_id": "Sari@Warung.co.id", "password": PASSWORD}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["email_id"] == "sari@warung.co.id"
        assert body["status"] == AccountStatus.ACTIVE
        assert "password" not in body

        account = session.query(Account).one()
        assert account.password != PASSWORD
        assert auditLog[-1]["_app_id"] == AppID.AUTH
        assert "password" not in auditLog[-1]

    def test_duplicate_email(self, client, signUp):
        signUp("sari@warung.co.id")
        response = client.post(
            ACCOUNT, data={"email_id": "sari@warung.co.id", "password": PASSWORD}
        )
        assert response.status_code == 409
        assert response.headers["X-Error"] == "UniqueViolation"

    def test_weak_password_rejected(self, client):
        response = client.post(
            ACCOUNT, data={"email_id": "sari@warung.co.id", "password": "short"}
        )
        assert response.status_code == 422

    def test_fetch_self(self, client, signUp):
        user = signUp("sari@warung.co.id")
        response = client.get(ACCOUNT, headers=user.header)
        assert response.status_code == 200
        assert response.json()["id"] == user.id

    def test_change_password(self, client, signUp, auditLog):
        user = signUp("sari@warung.co.id")
        response = client.patch(
            ACCOUNT, headers=user.header, data={"password": "rahasia123"}
        )
        assert response.status_code == 200
        assert auditLog[-1]["_account_id"] == user.id
        assert login(client, "sari@warung.co.id").status_code == 401
        assert login(client, "sari@warung.co.id", "rahasia123").status_code == 201

    def test_unchanged_update_is_not_logged(self, client, signUp, auditLog):
        user = signUp("sari@warung.co.id")
        count = len(auditLog)
        response = client.patch(
            ACCOUNT, headers=user.header, data={"email_id": "sari@warung.co.id"}
        )
        assert response.status_code == 200
        assert len(auditLog) == count

    def test_delete_cascades(self, client, signUp, session):
        user = signUp("budi@pelanggan.co.id", URL_CUSTOMER_APP)
        assert session.query(Profile).count() == 1

        response = client.delete(ACCOUNT, headers=user.header)
        assert response.status_code == 204
        assert session.query(Account).count() == 0
        assert session.query(AccountToken).count() == 0
        assert session.query(Profile).count() == 0

        response = client.get(URL_CUSTOMER_APP + URL_PROFILE, headers=user.header)
        assert response.status_code == 401


class TestToken:
    def test_login(self, client, signUp):
        signUp("sari@warung.co.id")
        response = login(client, "SARI@warung.co.id")
        assert response.status_code == 201
        body = response.json()
        assert len(body["access_token"]) == 64
        assert body["token_type"] == "bearer"

    def test_wrong_password(self, client, signUp):
        signUp("sari@warung.co.id")
        response = login(client, "sari@warung.co.id", "salah1234")
        assert response.status_code == 401
        assert response.headers["X-Error"] == "InvalidCredentials"

    def test_unknown_email(self, client):
        response = login(client, "siapa@warung.co.id")
        assert response.status_code == 401
        assert response.headers["X-Error"] == "InvalidCredentials"

    def test_suspended_account(self, client, signUp, session):
        signUp("sari@warung.co.id")
        account = session.query(Account).one()
        account.status = AccountStatus.SUSPENDED
        session.commit()

        response = login(client, "sari@warung.co.id")
        assert response.status_code == 412
        assert response.headers["X-Error"] == "InactiveAccount"

    def test_rotation(self, client, signUp, session):
        signUp("sari@warung.co.id")
        for _ in range(MAX_ACCOUNT_TOKENS + 2):
            assert login(client, "sari@warung.co.id").status_code == 201
        assert session.query(AccountToken).count() == MAX_ACCOUNT_TOKENS

    def test_refresh_rotates_value(self, client, signUp):
        user = signUp("sari@warung.co.id")
        response = client.patch(TOKEN, headers=user.header)
        assert response.status_code == 200
        fresh = response.json()["access_token"]
        assert fresh != user.access_token

        assert client.get(ACCOUNT, headers=user.header).status_code == 401
        header = {"Authorization": f"Bearer {fresh}"}
        assert client.get(ACCOUNT, headers=header).status_code == 200

    def test_list_is_masked(self, client, signUp):
        user = signUp("sari@warung.co.id")
        login(client, "sari@warung.co.id")
        response = client.get(TOKEN, headers=user.header)
        assert response.status_code == 200
        assert len(response.json()) == 2
        assert all("access_token" not in token for token in response.json())

    def test_self_revocation(self, client, signUp):
        user = signUp("sari@warung.co.id")
        assert client.delete(TOKEN, headers=user.header).status_code == 204
        assert client.get(ACCOUNT, headers=user.header).status_code == 401

    def test_other_account_token_untouched(self, client, signUp, session):
        sari = signUp("sari@warung.co.id")
        joko = signUp("joko@warung.co.id")
        jokoToken = (
            session.query(AccountToken)
            .filter(AccountToken.account_id == UUID(joko.id))
            .one()
        )
        response = client.request(
            "DELETE", TOKEN, headers=sari.header, data={"id": str(jokoToken.id)}
        )
        assert response.status_code == 204
        assert client.get(ACCOUNT, headers=joko.header).status_code == 200

    def test_invalid_token(self, client):
        header = {"Authorization": "Bearer " + "0" * 64}
        response = client.get(ACCOUNT, headers=header)
        assert response.status_code == 401
        assert response.headers["X-Error"] == "InvalidToken"
