"""
Rate-limited HTTP requester for the ChatGPT backend API.

Every request of an export run goes through one RateLimitedRequester, so all
of them share one pacing budget and one request counter.
"""

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.config import ExporterConfig
from chatgpt_exporter.core.errors import AuthExpiredError, CredentialError, NetworkError

from .credentials import CredentialSupplier

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class RequestState(str, Enum):
    """Lifecycle of a single execute() call."""

    IDLE = "idle"
    REQUESTING = "requesting"
    BACKOFF = "backoff"
    RETRYING = "retrying"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class RequestOptions:
    """Per-request options for RateLimitedRequester.execute()."""

    method: str = "GET"
    params: Optional[Dict[str, Any]] = None
    json: Optional[Any] = None
    headers: Optional[Dict[str, str]] = None
    authenticated: bool = True


class RateLimitedRequester:
    """
    Issue API requests with jittered pacing, retries and token refresh.

    Behaviour per execute() call:
    - every call after the first one in the session first sleeps a uniform
      random duration in [min_delay_ms, max_delay_ms]
    - 429: sleep Retry-After (capped at max_retry_after, or 2**attempt s)
      and retry, bounded by max_rate_limit_retries; does not count as a
      failure
    - 401: ask the credential supplier for a fresh token and retry; a
      supplier failure raises AuthExpiredError immediately
    - other non-2xx / transport errors: up to max_retries attempts with
      2**attempt s backoff, then NetworkError

    Parameters
    ----------
    config : ExporterConfig
        Pacing and retry settings
    credentials : CredentialSupplier
        Source of bearer tokens
    session : requests.Session, optional
        HTTP session (a fresh one by default)
    sleep : callable, optional
        Sleep function taking seconds (time.sleep by default)
    rng : random.Random, optional
        Random source for the pacing delay
    cancel_token : CancellationToken, optional
        Checked before every attempt and every sleep
    """

    def __init__(
        self,
        config: ExporterConfig,
        credentials: CredentialSupplier,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.credentials = credentials
        self._session = session or requests.Session()
        self._session.headers.update(self._build_headers())
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.cancel_token = cancel_token or CancellationToken()
        self._token: Optional[str] = None
        self.request_count = 0
        self.state = RequestState.IDLE

    @property
    def api_base_url(self) -> str:
        return self.config.api_base_url.rstrip("/")

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.config.account_id:
            headers["ChatGPT-Account-Id"] = self.config.account_id
        return headers

    def bind_cancellation(self, token: CancellationToken) -> None:
        """Use token for all following requests."""
        self.cancel_token = token

    def build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.api_base_url}/{endpoint.lstrip('/')}"

    def execute(
        self, endpoint: str, options: Optional[RequestOptions] = None
    ) -> requests.Response:
        """
        Execute one logical request, retrying as configured.

        Parameters
        ----------
        endpoint : str
            Path relative to the API base URL, or an absolute URL
        options : RequestOptions, optional
            Method, params, body and whether to send the bearer token

        Returns
        -------
        requests.Response
            The first 2xx response

        Raises
        ------
        NetworkError
            Retries exhausted (failures or 429s)
        AuthExpiredError
            The credential supplier could not produce a fresh token
        Cancelled
            The cancellation token was set
        """
        options = options or RequestOptions()
        url = self.build_url(endpoint)

        if self.request_count > 0:
            self._pace()
        self.request_count += 1

        failures = 0
        rate_limited = 0
        auth_refreshes = 0

        while True:
            self.cancel_token.raise_if_cancelled()
            self._transition(RequestState.REQUESTING, url)
            try:
                response = self._send(url, options)
            except requests.RequestException as e:
                failures += 1
                logger.warning(
                    "Request to %s failed (attempt %d/%d): %s",
                    url, failures, self.config.max_retries, e,
                )
                if failures >= self.config.max_retries:
                    self._transition(RequestState.FAILED, url)
                    raise NetworkError(
                        f"Request to {url} failed after {failures} attempts: {e}",
                        url=url,
                        cause=e,
                    ) from e
                self._backoff(2 ** failures, url)
                continue

            status = response.status_code
            if 200 <= status < 300:
                self._transition(RequestState.SUCCEEDED, url)
                return response

            if status == 429:
                rate_limited += 1
                if rate_limited > self.config.max_rate_limit_retries:
                    self._transition(RequestState.FAILED, url)
                    raise NetworkError(
                        f"Rate limited on {url} after {rate_limited - 1} retries",
                        url=url,
                        status_code=status,
                    )
                delay = self._retry_after(response, rate_limited)
                logger.info("Rate limited on %s, waiting %.1fs", url, delay)
                self._backoff(delay, url)
                continue

            if status == 401 and options.authenticated:
                auth_refreshes += 1
                if auth_refreshes > self.config.max_auth_refreshes:
                    self._transition(RequestState.FAILED, url)
                    raise AuthExpiredError(
                        f"Access token rejected by {url} after {auth_refreshes - 1} refreshes"
                    )
                logger.info("Access token rejected by %s, refreshing", url)
                self._refresh_token()
                self._transition(RequestState.RETRYING, url)
                continue

            failures += 1
            logger.warning(
                "Request to %s returned HTTP %d (attempt %d/%d)",
                url, status, failures, self.config.max_retries,
            )
            if failures >= self.config.max_retries:
                self._transition(RequestState.FAILED, url)
                raise NetworkError(
                    f"Request to {url} failed with HTTP {status} after {failures} attempts",
                    url=url,
                    status_code=status,
                )
            self._backoff(2 ** failures, url)

    def _send(self, url: str, options: RequestOptions) -> requests.Response:
        headers = dict(options.headers or {})
        if options.authenticated:
            headers["Authorization"] = f"Bearer {self._current_token()}"
        return self._session.request(
            options.method,
            url,
            params=options.params,
            json=options.json,
            headers=headers,
            timeout=self.config.request_timeout,
        )

    def _current_token(self) -> str:
        if self._token is None:
            self._refresh_token()
        return self._token

    def _refresh_token(self) -> None:
        try:
            self._token = self.credentials.get_token()
        except CredentialError as e:
            self._transition(RequestState.FAILED, "")
            raise AuthExpiredError(f"Could not obtain an access token: {e}") from e

    def _pace(self) -> None:
        """Randomized delay before every request after the first one."""
        self.cancel_token.raise_if_cancelled()
        delay_ms = self._rng.uniform(self.config.min_delay_ms, self.config.max_delay_ms)
        logger.debug("Sleeping %.0fms before request #%d", delay_ms, self.request_count + 1)
        self._sleep(delay_ms / 1000.0)

    def _backoff(self, seconds: float, url: str) -> None:
        self._transition(RequestState.BACKOFF, url)
        self.cancel_token.raise_if_cancelled()
        self._sleep(seconds)
        self._transition(RequestState.RETRYING, url)

    def _retry_after(self, response: requests.Response, attempt: int) -> float:
        value = response.headers.get("Retry-After")
        if value:
            try:
                delay = max(0.0, float(value))
            except ValueError:
                logger.debug("Non-numeric Retry-After header %r", value)
            else:
                if delay > self.config.max_retry_after:
                    logger.warning(
                        "Retry-After of %.0fs capped at %.0fs",
                        delay,
                        self.config.max_retry_after,
                    )
                    delay = self.config.max_retry_after
                return delay
        return float(2 ** attempt)

    def _transition(self, state: RequestState, url: str) -> None:
        logger.debug("Requester %s -> %s %s", self.state.value, state.value, url)
        self.state = state
