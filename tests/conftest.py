import os

import pytest

# Test directory name -> marker applied to every test collected under it
_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "bdd": pytest.mark.application,
    "integration": pytest.mark.integration,
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Overlay of storefront/domain.toml to run tests against",
    )


def pytest_sessionstart(session):
    """Select the config overlay before any test module imports the domain."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = item.path.parts
        layer = next((name for name in _LAYER_MARKERS if name in parts), None)
        if layer is None:
            continue
        item.add_marker(_LAYER_MARKERS[layer])
        if layer == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)
