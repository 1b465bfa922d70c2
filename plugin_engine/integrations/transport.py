"""
Transport builders: turn an instance's auth/TLS policy into request options.

These are pure functions: they never touch the network and never raise for
incomplete credentials. A missing token simply produces no ``Authorization``
header and the upstream system decides what to do with the call.
"""

from __future__ import annotations

import base64
import ssl
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx

from plugin_engine.integrations.schema import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    PluginInstance,
)

DEFAULT_TIMEOUT_MS = 30_000


@dataclass(slots=True)
class TransportOptions:
    """Headers, TLS verification and timeout for one outbound call."""

    headers: dict[str, str] = field(default_factory=dict)
    verify: Union[bool, ssl.SSLContext] = True
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def verifies_certificates(self) -> bool:
        return self.verify is True

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``httpx.AsyncClient``."""
        return {
            "headers": dict(self.headers),
            "verify": self.verify,
            "timeout": httpx.Timeout(self.timeout_ms / 1000),
        }


def build_auth_headers(
    instance: PluginInstance,
    extra_headers: Optional[dict[str, str]] = None,
) -> dict[str, str]:
    """Build request headers for ``instance``.

    ``Accept: application/json`` is always present. Authentication is added
    according to the resolved credential variant:

    * basic   -> ``Authorization: Basic base64(user:pass)``
    * bearer  -> ``Authorization: Bearer <token>``
    * api_key -> raw key under ``authConfig.header`` (or ``Authorization``)
    """
    headers: dict[str, str] = {"Accept": "application/json"}
    if extra_headers:
        headers.update(extra_headers)

    credentials = instance.credentials()
    if isinstance(credentials, BasicAuth):
        token = base64.b64encode(f"{credentials.username}:{credentials.password}".encode()).decode()
        headers["Authorization"] = f"Basic {token}"
    elif isinstance(credentials, BearerAuth):
        headers["Authorization"] = f"Bearer {credentials.token}"
    elif isinstance(credentials, ApiKeyAuth):
        headers[credentials.header or "Authorization"] = credentials.key

    return headers


def build_tls_agent(instance: PluginInstance) -> Optional[ssl.SSLContext]:
    """Return an SSL context with verification disabled, or ``None`` for defaults.

    Verification is disabled iff ``rejectUnauthorized`` is explicitly ``False``
    or ``allowSelfSigned`` is explicitly ``True``.
    """
    ssl_config = instance.ssl_config
    if ssl_config is None:
        return None

    if ssl_config.reject_unauthorized is False or ssl_config.allow_self_signed is True:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    return None


def build_transport_options(instance: PluginInstance, headers: dict[str, str]) -> TransportOptions:
    agent = build_tls_agent(instance)
    timeout_ms = DEFAULT_TIMEOUT_MS
    if instance.ssl_config is not None and instance.ssl_config.timeout:
        timeout_ms = instance.ssl_config.timeout

    return TransportOptions(
        headers=headers,
        verify=agent if agent is not None else True,
        timeout_ms=timeout_ms,
    )


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "TransportOptions",
    "build_auth_headers",
    "build_tls_agent",
    "build_transport_options",
]
