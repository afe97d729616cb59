# Ensure tests import modules from this service directory first.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from mirror_proxy.config import MirrorConfig  # noqa: E402
from mirror_proxy.utils_tests.upstream_mock import UPSTREAM_ORIGIN  # noqa: E402


@pytest.fixture
def config():
    """Pipeline configuration pointing at the test upstream."""
    return MirrorConfig(upstream_origin=UPSTREAM_ORIGIN, cache_ttl=3600)
