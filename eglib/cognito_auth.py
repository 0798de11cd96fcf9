"""Cognito ID token verification for the FastAPI surface.

API Gateway verifies tokens before invoking the Lambda handler; when the API
runs as a standalone FastAPI app the same check happens here.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from eglib.exceptions import AuthenticationError

LOGGER = logging.getLogger("easygenomics.cognito_auth")


class CognitoAuth:
    """Verify Cognito-issued ID tokens against the user pool JWKS."""

    def __init__(
        self,
        region: str,
        user_pool_id: str,
        app_client_id: str,
        http_client: Optional[httpx.Client] = None,
    ):
        self.region = region
        self.user_pool_id = user_pool_id
        self.app_client_id = app_client_id
        self.issuer = f"https://cognito-idp.{region}.amazonaws.com/{user_pool_id}"
        self.jwks_url = f"{self.issuer}/.well-known/jwks.json"
        self._http_client = http_client
        self._keys: Optional[Dict[str, Dict[str, Any]]] = None
        self._keys_lock = threading.Lock()

    def _fetch_jwks(self) -> Dict[str, Dict[str, Any]]:
        LOGGER.info("Fetching Cognito JWKS from %s", self.jwks_url)
        if self._http_client is not None:
            response = self._http_client.get(self.jwks_url, timeout=10.0)
        else:
            with httpx.Client() as client:
                response = client.get(self.jwks_url, timeout=10.0)
        response.raise_for_status()
        return {key["kid"]: key for key in response.json().get("keys", [])}

    def get_signing_key(self, kid: str) -> Dict[str, Any]:
        """Return the JWK for kid, refreshing the key set once on a miss."""
        with self._keys_lock:
            if self._keys is None or kid not in self._keys:
                self._keys = self._fetch_jwks()
            key = self._keys.get(kid)
        if key is None:
            raise AuthenticationError(message="Unknown token signing key")
        return key

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Verify an ID token and return its claims.

        Raises:
            AuthenticationError: signature, audience, issuer, expiry or
                token_use check failed.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise AuthenticationError(message="Malformed token") from e

        kid = header.get("kid")
        if not kid:
            raise AuthenticationError(message="Token has no key id")

        try:
            claims = jwt.decode(
                token,
                self.get_signing_key(kid),
                algorithms=["RS256"],
                audience=self.app_client_id,
                issuer=self.issuer,
            )
        except JWTError as e:
            LOGGER.info("Rejected token: %s", str(e))
            raise AuthenticationError(message="Invalid or expired token") from e

        if claims.get("token_use") != "id":
            raise AuthenticationError(message="An ID token is required")
        return claims


def create_auth_dependency(
    cognito_auth: CognitoAuth,
    optional: bool = False,
) -> Callable[..., Optional[Dict[str, Any]]]:
    """Build a FastAPI dependency returning verified claims.

    With ``optional=True`` a missing Authorization header yields None instead
    of a 401; a present but invalid token is always rejected.
    """
    bearer = HTTPBearer(auto_error=False)

    def get_claims(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    ) -> Optional[Dict[str, Any]]:
        if credentials is None:
            if optional:
                return None
            raise AuthenticationError()
        return cognito_auth.verify_token(credentials.credentials)

    return get_claims
