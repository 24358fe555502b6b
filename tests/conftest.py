"""Shared fixtures: in-memory stand-ins for the Kubernetes APIs and probes."""

import copy
import pytest
from unittest.mock import AsyncMock, Mock
from authop.types.settings import Settings


class FakeStatusUpdater:
    """Keeps the operator status in memory and applies mutations to it."""

    def __init__(self, current=None, error: Exception = None):
        self.current = copy.deepcopy(current or {})
        self.error = error
        self.calls = 0

    async def update_status(self, mutate):
        self.calls += 1
        if self.error is not None:
            raise self.error
        status = copy.deepcopy(self.current)
        mutate(status)
        self.current = status
        return {"status": status}


@pytest.fixture
def settings():
    """Settings with fixed versions and ports."""
    return Settings(
        oauth_server_image="quay.io/openshift/oauth-server:latest",
        operand_version="4.15.0",
        operator_version="4.15.0",
        kas_service_port=443,
        service_account_ca_path="/nonexistent/ca.crt",
        oauth_server_replicas=2,
    )


@pytest.fixture
def core_v1_api():
    return AsyncMock()


@pytest.fixture
def apps_v1_api():
    return AsyncMock()


@pytest.fixture
def custom_objects_api():
    return AsyncMock()


@pytest.fixture
def probe_client():
    client = Mock()
    client.check_route = AsyncMock()
    client.get_well_known = AsyncMock()
    return client


@pytest.fixture
def status_updater():
    return FakeStatusUpdater()


@pytest.fixture
def make_status_updater():
    """Factory for status updaters seeded with a status or failing with an error."""
    return FakeStatusUpdater
