"""
Services Layer for the Gym Admin Dashboard.

Exports the collection cache, list view engine, lifecycle controllers and
reporting service.
"""

from gymdesk.services.collection import (
    MEMBER_ENDPOINT,
    REORDER_ENDPOINT,
    CollectionEndpoint,
    FetchOutcome,
    RemoteCollection,
)
from gymdesk.services.list_view import (
    MEMBER_VIEW_SCHEMA,
    REORDER_VIEW_SCHEMA,
    CollectionView,
    Column,
    SortSpec,
    ViewSchema,
    apply_view,
)
from gymdesk.services.member_lifecycle import (
    CancellationForm,
    FreezeForm,
    MemberEvent,
    MemberLifecycleController,
    ReactivationForm,
    compute_freeze_end_date,
    get_member_state_machine,
)
from gymdesk.services.payments import PaymentSummary, add_months, summarize_payments
from gymdesk.services.reorder_lifecycle import (
    ReorderEvent,
    ReorderLifecycleController,
    get_reorder_state_machine,
    parse_quantity_received,
)
from gymdesk.services.reporting import ReportingService
from gymdesk.services.results import ActionResult
from gymdesk.services.state_machine import StateMachine, Transition, TransitionResult

__all__ = [
    "ActionResult",
    "CancellationForm",
    "CollectionEndpoint",
    "CollectionView",
    "Column",
    "FetchOutcome",
    "FreezeForm",
    "MEMBER_ENDPOINT",
    "MEMBER_VIEW_SCHEMA",
    "MemberEvent",
    "MemberLifecycleController",
    "PaymentSummary",
    "REORDER_ENDPOINT",
    "REORDER_VIEW_SCHEMA",
    "ReactivationForm",
    "RemoteCollection",
    "ReorderEvent",
    "ReorderLifecycleController",
    "ReportingService",
    "SortSpec",
    "StateMachine",
    "Transition",
    "TransitionResult",
    "ViewSchema",
    "add_months",
    "apply_view",
    "compute_freeze_end_date",
    "get_member_state_machine",
    "get_reorder_state_machine",
    "parse_quantity_received",
    "summarize_payments",
]
