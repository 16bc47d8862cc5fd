"""
Credential suppliers for the ChatGPT backend API.

The requester only depends on the get_token() contract; how a token is
discovered is the supplier's business.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

import dlt  # Only used for reading secrets

from chatgpt_exporter.core.errors import CredentialError

logger = logging.getLogger(__name__)


class CredentialSupplier(ABC):
    """Produces a bearer token, or raises CredentialError."""

    @abstractmethod
    def get_token(self) -> str:
        """
        Return a bearer token for the Authorization header.

        Called once before the first authenticated request and again every
        time the API answers 401.

        Raises
        ---
        CredentialError
            If no token can be produced
        """


class StaticCredentialSupplier(CredentialSupplier):
    """Always returns the same token. A 401 therefore cannot be recovered."""

    def __init__(self, token: str):
        if not token:
            raise CredentialError("Empty access token")
        self._token = token
        self._issued = False

    def get_token(self) -> str:
        # The same token was already rejected; handing it out again is pointless.
        if self._issued:
            raise CredentialError("Static access token was rejected and cannot be refreshed")
        self._issued = True
        return self._token


class ResolvedCredentialSupplier(CredentialSupplier):
    """
    Resolve the token from parameter, environment variable, or dlt secrets.

    Resolution order:
    1. Constructor parameter
    2. CHATGPT_ACCESS_TOKEN environment variable
    3. dlt secrets file (.dlt/secrets.toml) at sources.chatgpt_exporter

    Resolution is repeated on every call, so a 401 picks up a token that was
    rotated in the environment or secrets file while the export was running.
    """

    credential_env_var = "CHATGPT_ACCESS_TOKEN"
    dlt_secrets_path = "sources.chatgpt_exporter"

    def __init__(self, access_token: Optional[str] = None):
        self._param_value = access_token
        self._last_token: Optional[str] = None

    def get_token(self) -> str:
        token = self._resolve()
        if token == self._last_token:
            raise CredentialError("No fresh access token available; the current one was rejected")
        self._last_token = token
        return token

    def _resolve(self) -> str:
        """
        Resolve the credential without checking freshness.

        Raises
        ---
        CredentialError
            If the token cannot be resolved from any source
        """
        if self._param_value:
            return self._param_value

        env_value = os.getenv(self.credential_env_var)
        if env_value:
            return env_value

        try:
            secrets = dlt.secrets.get(self.dlt_secrets_path, {}) or {}
            dlt_value = secrets.get("access_token") or secrets.get("credential")
            if dlt_value:
                return dlt_value
        except Exception as e:
            logger.debug("dlt secrets not available: %s", e)

        raise CredentialError(
            f"Access token must be provided via parameter, {self.credential_env_var} "
            f"env var, or dlt secrets at {self.dlt_secrets_path}"
        )
