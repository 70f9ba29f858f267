"""
Streamlit Session Helpers.

Each page keeps one controller in ``st.session_state`` so that the cached
superset, filters and sort survive Streamlit reruns.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import streamlit as st

from gymdesk.core.config import get_settings
from gymdesk.gateways.api_client import DashboardApiClient
from gymdesk.services.member_lifecycle import MemberLifecycleController
from gymdesk.services.reorder_lifecycle import ReorderLifecycleController
from gymdesk.utils.logging import setup_logging_from_settings

T = TypeVar("T")

MEMBER_CONTROLLER_KEY = "gymdesk_member_controller"
REORDER_CONTROLLER_KEY = "gymdesk_reorder_controller"
LOGGING_KEY = "gymdesk_logging_configured"


def run_async(coro: Awaitable[T]) -> T:
    """Run async coroutine in sync context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def ensure_logging() -> None:
    """Configure logging once per browser session."""
    if not st.session_state.get(LOGGING_KEY):
        setup_logging_from_settings()
        st.session_state[LOGGING_KEY] = True


def _get_or_create(key: str, factory: Callable[[], Any]) -> Any:
    if key not in st.session_state:
        st.session_state[key] = factory()
    return st.session_state[key]


def get_member_controller() -> MemberLifecycleController:
    def build() -> MemberLifecycleController:
        controller = MemberLifecycleController(DashboardApiClient(), settings=get_settings())
        run_async(controller.load())
        return controller

    return _get_or_create(MEMBER_CONTROLLER_KEY, build)


def get_reorder_controller() -> ReorderLifecycleController:
    def build() -> ReorderLifecycleController:
        controller = ReorderLifecycleController(DashboardApiClient(), settings=get_settings())
        run_async(controller.load())
        return controller

    return _get_or_create(REORDER_CONTROLLER_KEY, build)


def flash(result: Any) -> None:
    """Render an ActionResult as a success, warning or error message."""
    if result.success:
        if result.message:
            st.success(result.message)
    elif result.is_rate_limited:
        st.warning(f"⏳ {result.error}")
    else:
        st.error(f"❌ {result.error}")
