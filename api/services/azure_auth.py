# SPDX-License-Identifier: Apache-2.0

"""
Microsoft sign-in through Azure AD (MSAL authorization code flow).

Needs ``AZURE_AD_CLIENT_ID`` and ``AZURE_AD_CLIENT_SECRET``; the authority
defaults to the multi-tenant ``common`` endpoint.
"""

import os
import secrets
import logging
from typing import Dict, Optional, Any
from opentelemetry import trace
import msal
import requests

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_AUTHORITY = "https://login.microsoftonline.com/common"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"
SCOPES = ["User.Read"]
GRAPH_TIMEOUT_SECONDS = 10


class AzureAuthError(Exception):
    """Raised when the code exchange or profile lookup fails."""
    pass


class AzureAuthService:
    """MSAL confidential client for the Microsoft sign-in button."""

    def __init__(self, client_id: Optional[str] = None, client_secret: Optional[str] = None,
                 authority: Optional[str] = None, redirect_uri: Optional[str] = None):
        self.client_id = client_id or os.getenv("AZURE_AD_CLIENT_ID", os.getenv("AZURE_CLIENT_ID", ""))
        self.client_secret = client_secret or os.getenv("AZURE_AD_CLIENT_SECRET", os.getenv("AZURE_CLIENT_SECRET", ""))
        self.authority = authority or os.getenv("AZURE_AD_AUTHORITY", DEFAULT_AUTHORITY)
        self.redirect_uri = redirect_uri or os.getenv(
            "AZURE_AD_REDIRECT_URI",
            "http://localhost:5000/api/auth/azure/callback"
        )
        self._app: Optional[msal.ConfidentialClientApplication] = None

        if self.is_configured():
            logger.info("Microsoft authentication ready")
        else:
            logger.warning("Azure AD not configured. Microsoft sign-in will not work")

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def app(self) -> msal.ConfidentialClientApplication:
        """Lazily built so an unreachable authority never blocks startup."""
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                self.client_id,
                authority=self.authority,
                client_credential=self.client_secret
            )
        return self._app

    def get_auth_url(self) -> Dict[str, str]:
        """Return ``{url, state}`` for the Microsoft login page."""
        state = secrets.token_urlsafe(16)
        url = self.app.get_authorization_request_url(
            SCOPES,
            state=state,
            redirect_uri=self.redirect_uri
        )
        return {"url": url, "state": state}

    def acquire_token_by_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for an access token."""
        with tracer.start_as_current_span("azure_auth.acquire_token"):
            result = self.app.acquire_token_by_authorization_code(
                code,
                scopes=SCOPES,
                redirect_uri=self.redirect_uri
            )

            if "access_token" not in result:
                detail = result.get("error_description") or result.get("error") or "unknown error"
                logger.error(f"Azure AD token exchange failed: {detail}")
                raise AzureAuthError(detail)

            return result

    def get_user_info(self, access_token: str) -> Dict[str, str]:
        """
        Fetch the signed-in profile from Microsoft Graph.

        Returns:
            ``{id, email, name}``
        """
        with tracer.start_as_current_span("azure_auth.graph_me"):
            try:
                response = requests.get(
                    GRAPH_ME_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                    timeout=GRAPH_TIMEOUT_SECONDS
                )
                response.raise_for_status()
            except requests.RequestException as e:
                logger.error(f"Error fetching user info: {str(e)}")
                raise AzureAuthError("Failed to fetch user info from Microsoft Graph")

            profile = response.json()
            name = profile.get("displayName") or " ".join(
                part for part in (profile.get("givenName"), profile.get("surname")) if part
            )
            return {
                "id": profile.get("id", ""),
                "email": (profile.get("mail") or profile.get("userPrincipalName") or "").lower(),
                "name": name or "Microsoft User"
            }

    def authenticate(self, code: str) -> Dict[str, str]:
        """Code exchange followed by the profile lookup."""
        token = self.acquire_token_by_code(code)
        return self.get_user_info(token["access_token"])
