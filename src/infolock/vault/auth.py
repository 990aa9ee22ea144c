"""
Authentication endpoints for the vault client library.
"""

from typing import Any, Dict

from loguru import logger

from .exceptions import TransportFailureError, ValidationError
from .transport import VaultTransport

LOGIN_FAILED = "Login failed"
REGISTRATION_FAILED = "Registration failed"


class AuthAPI:
    """Login, registration and logout against ``/auth``."""

    def __init__(self, transport: VaultTransport):
        self.transport = transport

    @property
    def session(self):
        return self.transport.session

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """
        Create an account. Does not log in.

        Returns:
            The backend's response body
        """
        for field, value in (("username", username), ("email", email), ("password", password)):
            if not value:
                raise ValidationError(f"{field.capitalize()} is required", field=field)

        payload = await self.transport.request_json(
            "POST", "/auth/register",
            operation="register", fallback_message=REGISTRATION_FAILED,
            json={"username": username, "email": email, "password": password},
        )
        logger.info(f"Registered account for {email}")
        return payload if isinstance(payload, dict) else {"result": payload}

    async def login(self, email: str, password: str) -> str:
        """
        Log in and store the returned token as the session credential.

        Returns:
            The bearer token
        """
        if not email or not password:
            raise ValidationError("Email and password are required", field="email" if not email else "password")

        payload = await self.transport.request_json(
            "POST", "/auth/login",
            operation="login", fallback_message=LOGIN_FAILED,
            json={"email": email, "password": password},
        )
        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            logger.error("login: response carried no token")
            raise TransportFailureError(LOGIN_FAILED, operation="login")

        self.session.set_credential(token)
        logger.info(f"Logged in as {email}")
        return token

    def logout(self) -> None:
        """Explicit user logout."""
        self.session.clear_credential()
