"""
URL routing for the transfers app (mounted under /api/).

- /orders/<id>/ → order detail with available actions
- /orders/<id>/protocols/<pickup|dropoff>/<step>/ → driver protocol workflow
- /orders/<id>/handoffs/, /orders/<id>/shuttles/ → mid-route legs
- /orders/<id>/<action>/ → back-office status actions
"""

from django.urls import path

from .views import (
    accept_handoff,
    add_expense,
    approve_segment,
    change_status,
    create_handoff,
    create_shuttle,
    open_protocol,
    order_detail,
    pending_segments,
    profit_report,
    reconcile_in_transit,
    reject_segment,
    save_protocol_draft,
    submit_protocol,
)

urlpatterns = [
    # Specific order routes BEFORE the catch-all <str:action>/ route
    path(
        "orders/<int:order_id>/protocols/<str:checklist_type>/open/",
        open_protocol,
        name="open_protocol",
    ),
    path(
        "orders/<int:order_id>/protocols/<str:checklist_type>/draft/",
        save_protocol_draft,
        name="save_protocol_draft",
    ),
    path(
        "orders/<int:order_id>/protocols/<str:checklist_type>/submit/",
        submit_protocol,
        name="submit_protocol",
    ),
    path(
        "orders/<int:order_id>/protocols/<str:checklist_type>/expenses/",
        add_expense,
        name="add_expense",
    ),
    path("orders/<int:order_id>/handoffs/", create_handoff, name="create_handoff"),
    path("orders/<int:order_id>/shuttles/", create_shuttle, name="create_shuttle"),
    path(
        "orders/<int:order_id>/<str:action>/", change_status, name="change_status"
    ),
    path("orders/<int:order_id>/", order_detail, name="order_detail"),
    path(
        "handoffs/<int:handoff_id>/accept/", accept_handoff, name="accept_handoff"
    ),
    path(
        "orders/reconcile-in-transit/",
        reconcile_in_transit,
        name="reconcile_in_transit",
    ),
    path("segments/pending/", pending_segments, name="pending_segments"),
    path(
        "segments/<int:segment_id>/approve/", approve_segment, name="approve_segment"
    ),
    path("segments/<int:segment_id>/reject/", reject_segment, name="reject_segment"),
    path("reports/profit/", profit_report, name="profit_report"),
]
