"""
Credential acquisition for the orchestrator.

Two independent credentials are needed:
- the infra identity token from the cloud metadata service, used to
  authenticate to the database. Expensive to fetch, so it is cached
  process-wide with an issuance time and refreshed lazily once stale.
  Concurrent first callers share a single fetch.
- the partner OAuth token (client-credentials grant), used for every partner
  API call. It is fetched fresh on every orchestration invocation and is the
  only call in the system with a retry policy.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import os
import threading
import time
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from src.errors import AuthError
from src.integrations.contracts.accident import Credential, CredentialKind
from src.utils.config_loader import MetadataConfig, PartnerApiConfig, require_env

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class InfraTokenProvider:
    """
    Single-flight, TTL-aware cache around the metadata token endpoint.

    The first caller on a cold or stale cache becomes the leader and fetches;
    every other caller, from any thread or event loop, awaits the leader's
    result through a shared concurrent future.
    """

    def __init__(
        self,
        config: Optional[MetadataConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or MetadataConfig()
        self._transport = transport
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._fetched_at: Optional[float] = None
        self._guard = threading.Lock()
        self._inflight: Optional[concurrent.futures.Future] = None

    def _is_fresh(self) -> bool:
        if self._credential is None or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self.config.token_ttl_seconds

    async def get_credential(self) -> Credential:
        if self._is_fresh():
            return self._credential

        with self._guard:
            # another caller may have refreshed while we waited
            if self._is_fresh():
                return self._credential
            inflight = self._inflight
            leader = inflight is None
            if leader:
                inflight = self._inflight = concurrent.futures.Future()

        if not leader:
            return await asyncio.wrap_future(inflight)

        try:
            credential = await self._fetch()
        except BaseException as exc:
            with self._guard:
                self._inflight = None
            inflight.set_exception(exc)
            raise

        with self._guard:
            self._credential = credential
            self._fetched_at = self._clock()
            self._inflight = None
        inflight.set_result(credential)
        return credential

    async def get_token(self) -> str:
        return (await self.get_credential()).value

    async def _fetch(self) -> Credential:
        logger.info("Fetching infra token from metadata service")
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
                response = await client.get(self.config.token_url, headers={"Metadata-Flavor": self.config.flavor})
                response.raise_for_status()
                data = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Infra token request failed: %s", exc)
            raise AuthError("Unable to obtain infra token from metadata service") from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            logger.error("Metadata service returned no access_token")
            raise AuthError("Metadata service returned an empty infra token")
        return Credential(kind=CredentialKind.INFRA, value=token)


class PartnerTokenProvider:
    """OAuth client-credentials exchange against the partner auth endpoint."""

    def __init__(
        self,
        config: Optional[PartnerApiConfig] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config or PartnerApiConfig()
        self._environ = environ
        self._transport = transport
        self._sleep = sleep

    def _credentials(self) -> dict:
        return require_env(
            self.config.client_id_env,
            self.config.client_secret_env,
            environ=self._environ if self._environ is not None else os.environ,
        )

    def check_config(self) -> None:
        self._credentials()

    async def get_credential(self) -> Credential:
        env = self._credentials()
        form = {
            "grant_type": "client_credentials",
            "client_id": env[self.config.client_id_env],
            "client_secret": env[self.config.client_secret_env],
        }

        retries = self.config.token_retries
        for attempt in range(1, retries + 1):
            try:
                token = await self._exchange(form)
                logger.info("Partner token obtained (attempt %s)", attempt)
                return Credential(kind=CredentialKind.PARTNER, value=token)
            except (httpx.HTTPError, ValueError, AuthError) as exc:
                logger.error("Partner auth failed (attempt %s/%s): %s", attempt, retries, _describe(exc))
                if attempt == retries:
                    raise
                await self._sleep(self.config.retry_backoff_seconds * attempt)
        raise AuthError("Partner token retries exhausted")  # pragma: no cover

    async def get_token(self) -> str:
        return (await self.get_credential()).value

    async def _exchange(self, form: dict) -> str:
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                self.config.auth_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            data = response.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("Partner auth response has no access_token")
        return token


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{exc.response.status_code} {exc.response.text[:500]}"
    return str(exc) or type(exc).__name__


_infra_provider: Optional[InfraTokenProvider] = None
_infra_provider_guard = threading.Lock()


def get_infra_token_provider(config: Optional[MetadataConfig] = None) -> InfraTokenProvider:
    """Process-wide infra token cache."""
    global _infra_provider
    if _infra_provider is None:
        with _infra_provider_guard:
            if _infra_provider is None:
                _infra_provider = InfraTokenProvider(config)
    return _infra_provider
