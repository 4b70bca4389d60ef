"""Tests for the service container and per-request context."""

import logging

import pytest

from shortlink_edge.dependencies import LOGGER_NAME, EdgeServices, RequestContext
from shortlink_edge.errors import ConfigurationMissingError

from conftest import make_settings


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(services=EdgeServices(make_settings(SHORT_LINK_API_URL=None)), request_id="req-42")


@pytest.mark.parametrize("extra", [None, {}, {"operation": "lookup"}])
def test_context_logger_accepts_any_extra(
    ctx: RequestContext, caplog: pytest.LogCaptureFixture, extra
) -> None:
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    ctx.logger.info("hello", extra=extra)

    record = caplog.records[-1]
    assert record.request_id == "req-42"
    if extra:
        assert record.operation == "lookup"


def test_context_headers_carry_request_id(ctx: RequestContext) -> None:
    assert ctx.get_context_headers() == {"X-Request-ID": "req-42"}


def test_require_client_without_base_url() -> None:
    services = EdgeServices(make_settings(SHORT_LINK_API_URL=None))

    assert services.client is None
    with pytest.raises(ConfigurationMissingError):
        services.require_client()
