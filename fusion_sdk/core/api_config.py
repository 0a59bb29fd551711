# fusion_sdk/core/api_config.py
# SPDX-License-Identifier: Apache-2.0
"""
Provider API configuration.

An `ApiConfiguration` bundles everything a provider adapter needs to
reach its backend: base URL, credentials, extra headers, the retry and
throttle policies applied to every call, and (optionally) a shared
`httpx.AsyncClient`.

Credentials follow the usual precedence: an explicit `api_key` wins,
otherwise the environment variable named by `api_key_env` is read at call
time. A missing key raises `ConfigurationError` before any request is
sent.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import httpx

from fusion_sdk.core.errors import ConfigurationError
from fusion_sdk.core.retry import ExponentialBackoffRetry, RetryPolicy
from fusion_sdk.core.throttle import NoopThrottle, Throttle


def default_retry() -> RetryPolicy:
    return ExponentialBackoffRetry(max_retries=2, initial_delay_ms=2000, backoff_factor=2.0)


@dataclass(frozen=True)
class ApiConfiguration:
    """
    Connection settings shared by all calls of a model.

    Attributes:
        base_url:    Provider endpoint root (no trailing slash needed).
        api_key:     Explicit API key; takes precedence over the environment.
        api_key_env: Environment variable consulted when api_key is unset.
        headers:     Extra headers sent with every request.
        retry:       Retry policy for every call made with this configuration.
        throttle:    Admission policy shared by every call made with this configuration.
        client:      Optional shared httpx.AsyncClient (connection pooling, proxies, tests).
        timeout_s:   Per-request timeout when the SDK creates its own client.
    """

    base_url: str = ""
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=default_retry)
    throttle: Throttle = field(default_factory=NoopThrottle)
    client: Optional[httpx.AsyncClient] = None
    timeout_s: float = 60.0

    provider_name = "api"

    def resolve_api_key(self) -> str:
        key = self.api_key or (os.getenv(self.api_key_env) if self.api_key_env else None)
        if not key:
            hint = f" (set {self.api_key_env} or pass api_key)" if self.api_key_env else ""
            raise ConfigurationError(
                f"{self.provider_name} API key is missing{hint}",
                details={"provider": self.provider_name},
            )
        return key

    def auth_headers(self) -> Dict[str, str]:
        """Authentication headers; the base configuration sends none."""
        return {}

    def request_headers(self) -> Dict[str, str]:
        headers = dict(self.auth_headers())
        headers.update(self.headers)
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass(frozen=True)
class BearerApiConfiguration(ApiConfiguration):
    """Configuration for providers using `Authorization: Bearer <key>`."""

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.resolve_api_key()}"}


__all__ = [
    "ApiConfiguration",
    "BearerApiConfiguration",
    "default_retry",
]
