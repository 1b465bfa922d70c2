"""
Tests for the transport builders.
"""

import base64
import ssl

import httpx

from plugin_engine.integrations.schema import (
    ApiKeyAuth,
    BasicAuth,
    BearerAuth,
    NoAuth,
    PluginInstance,
)
from plugin_engine.integrations.transport import (
    DEFAULT_TIMEOUT_MS,
    build_auth_headers,
    build_tls_agent,
    build_transport_options,
)


def make_instance(**overrides) -> PluginInstance:
    data = {"id": "inst-1", "name": "Instance", "baseUrl": "https://upstream.test"}
    data.update(overrides)
    return PluginInstance.model_validate(data)


class TestCredentials:
    """Resolution of authType + authConfig into a credential variant."""

    def test_basic_with_both_fields(self):
        instance = make_instance(authType="basic", authConfig={"username": "u", "password": "p"})
        assert instance.credentials() == BasicAuth(username="u", password="p")

    def test_basic_missing_password_is_no_auth(self):
        instance = make_instance(authType="basic", authConfig={"username": "u"})
        assert isinstance(instance.credentials(), NoAuth)

    def test_bearer(self):
        instance = make_instance(authType="bearer", authConfig={"token": "t"})
        assert instance.credentials() == BearerAuth(token="t")

    def test_api_key_keeps_header(self):
        instance = make_instance(authType="api_key", authConfig={"key": "k", "header": "X-Key"})
        assert instance.credentials() == ApiKeyAuth(key="k", header="X-Key")


class TestBuildAuthHeaders:
    """build_auth_headers - Accept header plus the resolved authorization."""

    def test_basic(self):
        instance = make_instance(authType="basic", authConfig={"username": "u", "password": "p"})
        headers = build_auth_headers(instance)

        assert headers["Accept"] == "application/json"
        assert headers["Authorization"] == "Basic " + base64.b64encode(b"u:p").decode()

    def test_bearer(self):
        instance = make_instance(authType="bearer", authConfig={"token": "t"})
        assert build_auth_headers(instance)["Authorization"] == "Bearer t"

    def test_api_key_custom_header(self):
        instance = make_instance(authType="api_key", authConfig={"key": "k", "header": "X-Key"})
        headers = build_auth_headers(instance)

        assert headers["X-Key"] == "k"
        assert "Authorization" not in headers

    def test_api_key_defaults_to_authorization(self):
        instance = make_instance(authType="api_key", authConfig={"key": "k"})
        assert build_auth_headers(instance)["Authorization"] == "k"

    def test_incomplete_credentials_produce_no_header(self):
        instance = make_instance(authType="bearer", authConfig={})
        assert build_auth_headers(instance) == {"Accept": "application/json"}

    def test_no_auth(self):
        assert "Authorization" not in build_auth_headers(make_instance())

    def test_extra_headers_are_kept(self):
        headers = build_auth_headers(make_instance(), {"Content-Type": "application/json"})
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"


class TestTlsAndOptions:
    """build_tls_agent / build_transport_options."""

    def test_reject_unauthorized_false_disables_verification(self):
        agent = build_tls_agent(make_instance(sslConfig={"rejectUnauthorized": False}))

        assert isinstance(agent, ssl.SSLContext)
        assert agent.verify_mode == ssl.CERT_NONE
        assert agent.check_hostname is False

    def test_allow_self_signed_disables_verification(self):
        assert build_tls_agent(make_instance(sslConfig={"allowSelfSigned": True})) is not None

    def test_default_verification(self):
        assert build_tls_agent(make_instance()) is None
        assert build_tls_agent(make_instance(sslConfig={"rejectUnauthorized": True})) is None

    def test_options_use_configured_timeout(self):
        instance = make_instance(sslConfig={"timeout": 5000})
        options = build_transport_options(instance, build_auth_headers(instance))

        assert options.timeout_ms == 5000
        assert options.verifies_certificates

        kwargs = options.client_kwargs()
        assert isinstance(kwargs["timeout"], httpx.Timeout)
        assert kwargs["timeout"].read == 5.0

    def test_options_default_timeout(self):
        options = build_transport_options(make_instance(), {})
        assert options.timeout_ms == DEFAULT_TIMEOUT_MS

    def test_options_carry_insecure_context(self):
        options = build_transport_options(make_instance(sslConfig={"allowSelfSigned": True}), {})
        assert isinstance(options.verify, ssl.SSLContext)
        assert not options.verifies_certificates
