"""Tests for the expiry sweeper thread."""
import threading
from contextlib import contextmanager
from unittest.mock import Mock

from services.workflow_engine.app.core.config import get_settings
from services.workflow_engine.app.services.expiry_sweeper import (
    ExpirySweeper,
    maybe_start_expiry_sweeper,
    maybe_stop_expiry_sweeper,
)


def _factory(manager):
    @contextmanager
    def scope():
        yield manager

    return scope


class TestExpirySweeper:
    def test_initialization(self):
        sweeper = ExpirySweeper(Mock(), interval_sec=30)

        assert sweeper._interval == 30
        assert sweeper.daemon is True
        assert isinstance(sweeper._stop, threading.Event)

    def test_default_interval_is_three_hours(self):
        assert ExpirySweeper(Mock())._interval == 3 * 60 * 60

    def test_stop(self):
        sweeper = ExpirySweeper(Mock())
        sweeper.stop()
        assert sweeper._stop.is_set()

    def test_sweep_once_expires(self):
        manager = Mock()
        manager.expire_old_approvals.return_value = 4

        assert ExpirySweeper(_factory(manager)).sweep_once() == 4
        manager.expire_old_approvals.assert_called_once()

    def test_sweep_once_swallows_errors(self):
        manager = Mock()
        manager.expire_old_approvals.side_effect = RuntimeError("db down")

        assert ExpirySweeper(_factory(manager)).sweep_once() == 0

    def test_sweep_with_real_manager(self, manager, clock):
        a = manager.create_approval(
            shop_id="shop-a",
            action_type="product_update",
            entity_type="product",
            entity_id="gid://shopify/Product/1",
            proposed_data={"title": "T"},
        )
        clock.advance(days=8)

        assert ExpirySweeper(_factory(manager)).sweep_once() == 1
        assert manager.get_approval(a.id).status == "expired"


class TestMaybeStart:
    def test_disabled_returns_none(self):
        app = Mock()
        # conftest disables the sweeper
        assert get_settings().expiry_sweeper_enabled is False
        assert maybe_start_expiry_sweeper(app, Mock()) is None

    def test_stop_without_thread(self):
        app = Mock()
        app.state = Mock(spec=[])
        maybe_stop_expiry_sweeper(app)

    def test_stop_running_thread(self):
        app = Mock()
        thread = Mock()
        app.state.expiry_sweeper_thread = thread

        maybe_stop_expiry_sweeper(app)

        thread.stop.assert_called_once()
