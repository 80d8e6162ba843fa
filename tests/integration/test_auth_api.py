"""Integration tests for /api/auth endpoints."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from homi.api.deps import get_identity_components
from homi.api.v1.auth import FORGOT_PASSWORD_MESSAGE
from homi.database import get_db
from homi.kernel.identity.components import IdentityComponents
from homi.main import app
from tests.conftest import DEFAULT_PASSWORD

AUTH = "/api/auth"

REGISTRATION = {
    "email": "newuser@example.com",
    "password": "SecurePass123",
    "first_name": "New",
    "last_name": "User",
    "phone": "0123456789",
    "role": "LANDLORD",
}


@pytest_asyncio.fixture
async def client(session_maker, hasher, cipher, minter, jwt_manager, google_provider, notifier):
    """HTTP client wired to the in-memory database and recording notifier."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    components = IdentityComponents(
        hasher=hasher,
        cipher=cipher,
        minter=minter,
        jwt_manager=jwt_manager,
        provider=google_provider,
        notifier=notifier,
        require_email_verification=True,
        federated_default_role="TENANT",
    )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_components] = lambda: components

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _login(client: AsyncClient, identifier: str, password: str) -> dict:
    response = await client.post(
        f"{AUTH}/login",
        json={"identifier": identifier, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "X-Request-ID" in response.headers

    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestRegisterAndLogin:
    async def test_register(self, client: AsyncClient):
        response = await client.post(f"{AUTH}/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert "access_token" not in body
        user = body["data"]
        assert user["email"] == "newuser@example.com"
        assert user["role"] == "LANDLORD"
        assert user["is_verified"] is False
        assert user["email_verified"] is False
        assert user["profile"]["phone_number"] == "0123456789"
        assert "national_id" not in user["profile"]

    async def test_register_duplicate_email(self, client: AsyncClient):
        await client.post(f"{AUTH}/register", json=REGISTRATION)

        response = await client.post(
            f"{AUTH}/register",
            json={**REGISTRATION, "email": "NewUser@example.com", "phone": "0123456780"},
        )

        assert response.status_code == 409
        assert response.json() == {
            "success": False,
            "message": "Email already registered",
            "code": "EMAIL_EXISTS",
        }

    async def test_register_admin_role_rejected(self, client: AsyncClient):
        response = await client.post(f"{AUTH}/register", json={**REGISTRATION, "role": "ADMIN"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_register_weak_password(self, client: AsyncClient):
        response = await client.post(f"{AUTH}/register", json={**REGISTRATION, "password": "weakpass"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["errors"][0]["field"] == "password"

    async def test_login_by_email_and_phone(self, client: AsyncClient, jwt_manager):
        await client.post(f"{AUTH}/register", json=REGISTRATION)

        by_email = await _login(client, "newuser@example.com", "SecurePass123")
        by_phone = await _login(client, "+20 123 456 789", "SecurePass123")

        assert by_email["token_type"] == "bearer"
        assert 0 < by_email["expires_in"] <= 15 * 60
        assert by_email["user"]["id"] == by_phone["user"]["id"]
        claims = jwt_manager.verify_access_token(by_email["access_token"])
        assert claims.role == "LANDLORD"

    async def test_login_invalid_credentials(self, client: AsyncClient):
        await client.post(f"{AUTH}/register", json=REGISTRATION)

        wrong = await client.post(
            f"{AUTH}/login",
            json={"identifier": "newuser@example.com", "password": "WrongPass123"},
        )
        unknown = await client.post(
            f"{AUTH}/login",
            json={"identifier": "ghost@example.com", "password": "SecurePass123"},
        )

        assert wrong.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["code"] == "INVALID_CREDENTIALS"

    async def test_refresh(self, client: AsyncClient):
        await client.post(f"{AUTH}/register", json=REGISTRATION)
        tokens = await _login(client, "newuser@example.com", "SecurePass123")

        response = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "newuser@example.com"

    async def test_refresh_rejects_access_token(self, client: AsyncClient):
        await client.post(f"{AUTH}/register", json=REGISTRATION)
        tokens = await _login(client, "newuser@example.com", "SecurePass123")

        response = await client.post(f"{AUTH}/refresh", json={"refresh_token": tokens["access_token"]})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"


class TestAuthentication:
    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get(f"{AUTH}/me")

        assert response.status_code == 401
        assert response.json()["code"] == "NOT_AUTHENTICATED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get(f"{AUTH}/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    async def test_me_with_expired_token(self, client: AsyncClient, registered_account, jwt_manager):
        token, _ = jwt_manager.create_token(
            "access",
            registered_account.id,
            registered_account.email,
            registered_account.role_value,
            expires_delta=timedelta(seconds=-5),
        )

        response = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["code"] == "TOKEN_EXPIRED"

    async def test_me(self, client: AsyncClient, registered_account, auth_headers):
        response = await client.get(f"{AUTH}/me", headers=auth_headers(registered_account))

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "tenant@example.com"
        assert body["profile"]["first_name"] == "Test"

    async def test_update_profile(self, client: AsyncClient, registered_account, auth_headers):
        response = await client.put(
            f"{AUTH}/profile",
            headers=auth_headers(registered_account),
            json={"bio": "Hello", "preferred_budget_min": "1000", "preferred_budget_max": "2500"},
        )

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["bio"] == "Hello"
        assert profile["last_name"] == "Tenant"

    async def test_update_profile_budget_range(self, client: AsyncClient, registered_account, auth_headers):
        response = await client.put(
            f"{AUTH}/profile",
            headers=auth_headers(registered_account),
            json={"preferred_budget_min": 3000, "preferred_budget_max": 1000},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_BUDGET_RANGE"

    async def test_change_password(self, client: AsyncClient, registered_account, auth_headers):
        response = await client.put(
            f"{AUTH}/change-password",
            headers=auth_headers(registered_account),
            json={"current_password": DEFAULT_PASSWORD, "new_password": "ChangedPass456"},
        )

        assert response.status_code == 200
        await _login(client, "tenant@example.com", "ChangedPass456")


class TestPasswordReset:
    async def test_forgot_password_does_not_reveal_accounts(self, client: AsyncClient, registered_account, notifier):
        known = await client.post(f"{AUTH}/forgot-password", json={"email": "tenant@example.com"})
        unknown = await client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert known.json()["message"] == FORGOT_PASSWORD_MESSAGE
        assert len(notifier.reset_links) == 1

    async def test_reset_password(self, client: AsyncClient, registered_account, notifier):
        await client.post(f"{AUTH}/forgot-password", json={"email": "tenant@example.com"})
        _, token = notifier.reset_links[0]

        response = await client.post(
            f"{AUTH}/reset-password",
            json={"token": token, "new_password": "ResetPass789"},
        )
        replay = await client.post(
            f"{AUTH}/reset-password",
            json={"token": token, "new_password": "ResetPass000"},
        )

        assert response.status_code == 200
        assert replay.status_code == 400
        assert replay.json()["code"] == "INVALID_RESET_TOKEN"
        await _login(client, "tenant@example.com", "ResetPass789")


class TestVerificationFlow:
    async def test_verify_email_requires_token(self, client: AsyncClient):
        response = await client.get(f"{AUTH}/verify-email")

        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_REQUIRED"

    async def test_verify_email_unknown_token(self, client: AsyncClient):
        response = await client.get(f"{AUTH}/verify-email", params={"token": "f" * 64})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_VERIFICATION_TOKEN"

    async def test_complete_verification_needs_verified_email(
        self, client: AsyncClient, registered_account, auth_headers
    ):
        response = await client.post(
            f"{AUTH}/complete-verification",
            headers=auth_headers(registered_account),
            json={"national_id": "29801011234567", "gender": "MALE", "birthdate": "1998-01-01"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "EMAIL_NOT_VERIFIED"

    async def test_full_flow_and_admin_reveal(
        self, client: AsyncClient, registered_account, test_admin, auth_headers, notifier
    ):
        headers = auth_headers(registered_account)

        sent = await client.post(f"{AUTH}/send-verification-email", headers=headers)
        assert sent.status_code == 200
        assert sent.json()["already_verified"] is False
        _, token = notifier.verification_links[0]

        page = await client.get(f"{AUTH}/verify-email", params={"token": token})
        assert page.status_code == 200
        assert page.headers["content-type"].startswith("text/html")
        assert "Email Verified" in page.text

        again = await client.post(f"{AUTH}/send-verification-email", headers=headers)
        assert again.json()["already_verified"] is True

        completed = await client.post(
            f"{AUTH}/complete-verification",
            headers=headers,
            json={"national_id": "29801011234567", "gender": "FEMALE", "birthdate": "1998-01-01"},
        )
        assert completed.status_code == 200
        user = completed.json()["data"]
        assert user["is_verified"] is True
        assert user["is_verification_complete"] is True
        assert "29801011234567" not in completed.text

        forbidden = await client.get(
            f"{AUTH}/users/{registered_account.id}/national-id",
            headers=headers,
        )
        assert forbidden.status_code == 403

        revealed = await client.get(
            f"{AUTH}/users/{registered_account.id}/national-id",
            headers=auth_headers(test_admin),
        )
        assert revealed.status_code == 200
        assert revealed.json()["national_id"] == "29801011234567"

    async def test_future_birthdate_rejected(self, client: AsyncClient, registered_account, auth_headers):
        response = await client.post(
            f"{AUTH}/complete-verification",
            headers=auth_headers(registered_account),
            json={"national_id": "29801011234567", "gender": "MALE", "birthdate": "2999-01-01"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestGoogleLogin:
    async def test_google_login_provisions_account(self, client: AsyncClient, google_users):
        google_users["g-token"] = {
            "sub": "123",
            "email": "jane@gmail.com",
            "email_verified": True,
            "given_name": "Jane",
            "family_name": "Doe",
        }

        response = await client.post(f"{AUTH}/google", json={"google_access_token": "g-token"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "jane@gmail.com"
        assert user["role"] == "TENANT"
        assert user["email_verified"] is True
        assert user["is_verified"] is False
        assert user["profile"]["phone_number"] is None

    async def test_google_login_invalid_token(self, client: AsyncClient):
        response = await client.post(f"{AUTH}/google", json={"google_access_token": "bogus"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_GOOGLE_TOKEN"

    @pytest.mark.parametrize("payload", [{}, {"google_access_token": ""}])
    async def test_google_login_missing_token(self, client: AsyncClient, payload):
        response = await client.post(f"{AUTH}/google", json=payload)
        assert response.status_code == 400
