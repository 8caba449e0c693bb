"""
JSON endpoints for the driver app and the dispatch back office.

Views stay thin: they resolve rows, parse input, call a service or model
method and translate its errors into status codes.
"""

import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from accounts.models import Company

from .forms import (
    AssignDriverForm,
    CancelOrderForm,
    ExpenseForm,
    HandoffForm,
    ProfitReportForm,
    SegmentPriceForm,
    SegmentRejectForm,
    ShuttleForm,
)
from .models import Driver, Order, OrderHandoff, OrderSegment
from .policies import checklist_rules
from .policies.order_actions import actions_for
from .policies.roles import default_policy
from .services import checklists, finance, handoffs, reconciliation, segments
from .services.exceptions import (
    AuthorizationError,
    ChecklistDraftError,
    ChecklistLockedError,
    ChecklistValidationError,
    ServiceError,
    StateConflictError,
)

logger = logging.getLogger(__name__)


def _error(message, status, **extra):
    return JsonResponse({"error": message, **extra}, status=status)


def service_endpoint(view):
    """Translate service errors into JSON error responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ChecklistValidationError as e:
            return _error(e.message, 400, step=e.step, predicate=e.predicate)
        except ChecklistDraftError as e:
            return _error(e.message, 400, field=e.field)
        except AuthorizationError as e:
            return _error(str(e), 403)
        except (StateConflictError, ChecklistLockedError) as e:
            return _error(str(e), 409)
        except ValueError as e:
            # ServiceError and model guard clauses
            return _error(str(e), 400)

    return wrapper


def _payload(request):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except json.JSONDecodeError:
            raise ServiceError("Request body is not valid JSON.") from None
        if not isinstance(data, dict):
            raise ServiceError("Request body must be a JSON object.")
        return data
    return request.POST.dict()


def _form_error(form):
    return _error("Invalid input.", 400, fields=form.errors.get_json_data())


def _driver_for(request):
    driver = getattr(request.user, "driver_profile", None)
    if driver is None:
        raise AuthorizationError("This action is only available to drivers.")
    return driver


def _company_orders(request):
    policy = default_policy()
    if policy.is_system_admin(request.user):
        return Order.objects.all()
    return Order.objects.filter(company_id=request.user.company_id)


def _get_order(request, order_id):
    return get_object_or_404(_company_orders(request), pk=order_id)


def _company_for(request, policy):
    """The caller's company; system admins may pick one with ``company``."""
    company_id = request.GET.get("company") or request.POST.get("company")
    if company_id and policy.is_system_admin(request.user):
        return get_object_or_404(Company, pk=company_id)
    if request.user.company_id is None:
        raise AuthorizationError("No company is linked to this account.")
    return request.user.company


# SERIALIZATION


def order_json(order):
    return {
        "id": order.pk,
        "order_number": order.order_number,
        "status": order.status,
        "status_label": order.get_status_display(),
        "assigned_driver": order.assigned_driver_id,
        "assigned_driver_name": order.assigned_driver_name,
        "pickup": order.pickup_location_label,
        "dropoff": order.dropoff_location_label,
        "pickup_date": order.pickup_date,
        "dropoff_date": order.dropoff_date,
        "license_plate": order.license_plate,
        "driver_price": order.driver_price,
    }


def checklist_json(checklist, checklist_type):
    return {
        "id": checklist.pk,
        "type": checklist.type,
        "completed": checklist.completed,
        "completed_at": checklist.completed_at,
        "completed_steps": checklist_rules.completed_steps(checklist, checklist_type),
        "submittable": checklist_rules.is_submittable(checklist, checklist_type),
    }


def segment_json(segment):
    return {
        "id": segment.pk,
        "order": segment.order_id,
        "type": segment.segment_type,
        "driver": segment.driver_id,
        "start_location": segment.start_location,
        "end_location": segment.end_location,
        "distance_km": segment.distance_km,
        "price": segment.price,
        "price_status": segment.price_status,
        "price_rejection_reason": segment.price_rejection_reason,
        "created_at": segment.created_at,
    }


def handoff_json(handoff):
    return {
        "id": handoff.pk,
        "order": handoff.order_id,
        "status": handoff.status,
        "location": handoff.location,
        "latitude": handoff.latitude,
        "longitude": handoff.longitude,
        "created_by": handoff.created_by_id,
        "accepted_by": handoff.accepted_by_id,
        "accepted_at": handoff.accepted_at,
    }


# ORDERS


@login_required
@require_GET
def order_detail(request, order_id):
    order = _get_order(request, order_id)
    return JsonResponse(
        {
            "order": order_json(order),
            "available_actions": actions_for(request.user, order),
            "segments": [segment_json(s) for s in order.segments.all()],
            "handoffs": [handoff_json(h) for h in order.handoffs.all()],
        }
    )


@login_required
@require_POST
@service_endpoint
def change_status(request, order_id, action):
    """Back-office status actions, routed to the Order model methods."""
    order = _get_order(request, order_id)
    default_policy().ensure_staff(request.user, order.company_id)
    data = _payload(request)

    if action == "assign_driver":
        form = AssignDriverForm(data)
        if not form.is_valid():
            return _form_error(form)
        driver = get_object_or_404(
            Driver, pk=form.cleaned_data["driver"], company_id=order.company_id
        )
        order.assign_driver(driver)
    elif action == "cancel":
        form = CancelOrderForm(data)
        if not form.is_valid():
            return _form_error(form)
        order.cancel(reason=form.cleaned_data["reason"])
    elif action == "send_to_review":
        order.send_to_review()
    elif action == "mark_ready_for_billing":
        order.mark_ready_for_billing()
    elif action == "approve_billing":
        order.approve_billing()
    else:
        return _error(f"Unknown action: {action}", 404)

    logger.info("Order %s: %s by user %s", order.order_number, action, request.user.pk)
    return JsonResponse({"order": order_json(order)})


# PROTOCOLS


@login_required
@require_POST
@service_endpoint
def open_protocol(request, order_id, checklist_type):
    order = _get_order(request, order_id)
    order, checklist = checklists.open_protocol(
        order=order, driver=_driver_for(request), checklist_type=checklist_type
    )
    return JsonResponse(
        {"order": order_json(order), "checklist": checklist_json(checklist, checklist_type)}
    )


@login_required
@require_POST
@service_endpoint
def save_protocol_draft(request, order_id, checklist_type):
    order = _get_order(request, order_id)
    checklist = checklists.save_checklist_draft(
        order=order,
        driver=_driver_for(request),
        checklist_type=checklist_type,
        draft=dict(_payload(request)),
    )
    return JsonResponse({"checklist": checklist_json(checklist, checklist_type)})


@login_required
@require_POST
@service_endpoint
def submit_protocol(request, order_id, checklist_type):
    order = _get_order(request, order_id)
    order, checklist = checklists.submit_checklist(
        order=order,
        driver=_driver_for(request),
        checklist_type=checklist_type,
        draft=dict(_payload(request)),
    )
    return JsonResponse(
        {"order": order_json(order), "checklist": checklist_json(checklist, checklist_type)}
    )


@login_required
@require_POST
@service_endpoint
def add_expense(request, order_id, checklist_type):
    order = _get_order(request, order_id)
    checklist = order.checklist_of(checklist_type)
    if checklist is None:
        return _error("No protocol of this type exists for the order.", 404)

    form = ExpenseForm(_payload(request))
    if not form.is_valid():
        return _form_error(form)
    expense = checklists.add_checklist_expense(
        checklist=checklist,
        driver=_driver_for(request),
        expense_type=form.cleaned_data["type"],
        amount=form.cleaned_data["amount"],
        note=form.cleaned_data["note"],
        receipt_url=form.cleaned_data["receipt_url"],
    )
    return JsonResponse(
        {"id": expense.pk, "type": expense.type, "amount": expense.amount}, status=201
    )


# HANDOFFS / SHUTTLES


@login_required
@require_POST
@service_endpoint
def create_handoff(request, order_id):
    order = _get_order(request, order_id)
    form = HandoffForm(_payload(request))
    if not form.is_valid():
        return _form_error(form)
    result = handoffs.create_handoff(
        order=order, driver=_driver_for(request), **form.cleaned_data
    )
    return JsonResponse(
        {
            "handoff": handoff_json(result.handoff),
            "segment": segment_json(result.segment),
            "order": order_json(result.order),
        },
        status=201,
    )


@login_required
@require_POST
@service_endpoint
def create_shuttle(request, order_id):
    order = _get_order(request, order_id)
    form = ShuttleForm(_payload(request))
    if not form.is_valid():
        return _form_error(form)
    result = handoffs.create_shuttle(
        order=order, driver=_driver_for(request), **form.cleaned_data
    )
    return JsonResponse(
        {"segment": segment_json(result.segment), "order": order_json(result.order)},
        status=201,
    )


@login_required
@require_POST
@service_endpoint
def accept_handoff(request, handoff_id):
    handoff = get_object_or_404(
        OrderHandoff.objects.select_related("order").filter(
            order__in=_company_orders(request)
        ),
        pk=handoff_id,
    )
    result = handoffs.accept_handoff(handoff=handoff, driver=_driver_for(request))
    return JsonResponse(
        {"handoff": handoff_json(result.handoff), "order": order_json(result.order)}
    )


# RECONCILIATION


@login_required
@require_POST
@service_endpoint
def reconcile_in_transit(request):
    policy = default_policy()
    company = _company_for(request, policy)
    policy.ensure_can_reconcile(request.user, company.pk)
    result = reconciliation.reconcile_stuck_orders(company)
    return JsonResponse(result.as_dict())


# SEGMENT PRICES


@login_required
@require_GET
@service_endpoint
def pending_segments(request):
    policy = default_policy()
    company = _company_for(request, policy)
    policy.ensure_staff(request.user, company.pk)
    return JsonResponse(
        {"segments": [segment_json(s) for s in segments.pending_price_requests(company)]}
    )


def _get_segment(request, segment_id):
    return get_object_or_404(
        OrderSegment.objects.select_related("order"), pk=segment_id
    )


@login_required
@require_POST
@service_endpoint
def approve_segment(request, segment_id):
    segment = _get_segment(request, segment_id)
    form = SegmentPriceForm(_payload(request))
    if not form.is_valid():
        return _form_error(form)
    segment = segments.approve_segment_price(
        segment=segment, price=form.cleaned_data["price"], user=request.user
    )
    return JsonResponse({"segment": segment_json(segment)})


@login_required
@require_POST
@service_endpoint
def reject_segment(request, segment_id):
    segment = _get_segment(request, segment_id)
    form = SegmentRejectForm(_payload(request))
    if not form.is_valid():
        return _form_error(form)
    segment = segments.reject_segment_price(
        segment=segment, reason=form.cleaned_data["reason"], user=request.user
    )
    return JsonResponse({"segment": segment_json(segment)})


# REPORTS


@login_required
@require_GET
@service_endpoint
def profit_report(request):
    policy = default_policy()
    company = _company_for(request, policy)
    policy.ensure_staff(request.user, company.pk)

    form = ProfitReportForm(request.GET)
    if not form.is_valid():
        return _form_error(form)
    report = finance.profit_report(
        company,
        form.cleaned_data["date_from"],
        form.cleaned_data["date_to"],
        bucket=form.cleaned_data["bucket"] or None,
    )

    def totals_json(totals):
        return {
            "revenue": totals.revenue,
            "driver_cost": totals.driver_cost,
            "fuel_advance": totals.fuel_advance,
            "profit": totals.profit,
        }

    return JsonResponse(
        {
            "date_from": report.date_from,
            "date_to": report.date_to,
            "rows": [
                {
                    "order": row.order_id,
                    "order_number": row.order_number,
                    "report_date": row.report_date,
                    "revenue": row.revenue,
                    "driver_cost": row.driver_cost,
                    "fuel_advance": row.fuel_advance,
                    "profit": row.profit,
                }
                for row in report.rows
            ],
            "totals": totals_json(report.totals),
            "buckets": [
                {"start": start, **totals_json(totals)}
                for start, totals in report.buckets.items()
            ],
        }
    )
