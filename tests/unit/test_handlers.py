"""Unit tests for the kopf handlers of the operator config."""

import asyncio
import kopf
import logging
import pytest
from unittest.mock import AsyncMock, Mock
from kubernetes_asyncio.client import ApiException

from authop.handlers.authentication import (
    RETRY_DELAY,
    TimerSuccessFilter,
    is_cluster_config,
    reconcile,
)
from authop.handlers.probes import get_last_sync
from authop.utils.errors import SyncError

BODY = {"metadata": {"name": "cluster", "generation": 1}, "spec": {}}


@pytest.fixture
def memo():
    memo = kopf.Memo()
    memo.oauth_server = Mock()
    memo.oauth_server.sync = AsyncMock()
    memo.bootstrap_state = Mock()
    memo.sync_lock = asyncio.Lock()
    return memo


class TestReconcile:
    """Tests for reconcile."""

    @pytest.mark.asyncio
    async def test_runs_sync_with_a_copy_of_the_body(self, memo):
        await reconcile(BODY, memo, logging.getLogger(__name__), "timer")

        body, state, trigger = memo.oauth_server.sync.await_args.args
        assert body == BODY
        assert body is not BODY
        assert state is memo.bootstrap_state
        assert trigger == "timer"

    @pytest.mark.asyncio
    async def test_sync_error_is_retried(self, memo):
        memo.oauth_server.sync.side_effect = SyncError("failed handling the route", ValueError("x"))

        with pytest.raises(kopf.TemporaryError) as ex:
            await reconcile(BODY, memo, logging.getLogger(__name__), "update")
        assert ex.value.delay == RETRY_DELAY

    @pytest.mark.asyncio
    async def test_api_error_is_retried(self, memo):
        memo.oauth_server.sync.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(kopf.TemporaryError):
            await reconcile(BODY, memo, logging.getLogger(__name__), "update")

    @pytest.mark.asyncio
    async def test_probe_timeout_is_retried(self, memo):
        memo.oauth_server.sync.side_effect = asyncio.TimeoutError()

        with pytest.raises(kopf.TemporaryError):
            await reconcile(BODY, memo, logging.getLogger(__name__), "update")


class TestFilters:
    """Tests for handler filters."""

    def test_only_cluster_config(self):
        assert is_cluster_config("cluster")
        assert not is_cluster_config("other")

    def test_timer_success_messages_dropped(self):
        log_filter = TimerSuccessFilter()

        def record(msg):
            return logging.LogRecord("kopf.objects", logging.INFO, "", 0, msg, None, None)

        assert not log_filter.filter(record("Timer 'resync' succeeded."))
        assert log_filter.filter(record("Timer 'resync' failed temporarily."))
        assert log_filter.filter(record("Handler 'on_update' succeeded."))


class TestProbes:
    """Tests for the liveness probes."""

    def test_last_sync_before_startup(self):
        assert get_last_sync(memo=kopf.Memo()) is None

    def test_last_sync_reported(self, memo):
        memo.oauth_server.last_sync = {"succeeded": True}
        assert get_last_sync(memo=memo) == {"succeeded": True}
