"""Logging configuration tests."""

import logging

from upirelay.common.logging import ContextFilter, configure_logging

from conftest import make_settings


def test_repeated_configuration_keeps_one_context_filter():
    """Building several apps in one process must not stack root filters."""

    configure_logging(make_settings())
    configure_logging(make_settings(service_name="second"))

    root = logging.getLogger()
    filters = [f for f in root.filters if isinstance(f, ContextFilter)]
    assert len(filters) == 1
    assert filters[0].service_name == "second"
    assert len(root.handlers) == 1
