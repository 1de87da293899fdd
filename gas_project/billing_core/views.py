import json
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from . import api
from .results import Result

STATUS_BY_CODE = {
    "validation_error": 400,
    "business_rule": 400,
    "not_found": 404,
    "no_tenant": 403,
    "conflict": 409,
    "infrastructure": 503,
}


def _respond(result: Result, success_status=200):
    status = success_status if result.ok else STATUS_BY_CODE.get(result.code, 400)
    return JsonResponse(result.as_dict(), status=status)


def _payload(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def api_view(view):
    """Reject anonymous callers and malformed JSON bodies before the view runs."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse(
                {"ok": False, "code": "unauthorized", "error": "Authentication required."}, status=401
            )
        payload = _payload(request) if request.method in ("POST", "PATCH") else {}
        if payload is None:
            return JsonResponse(
                {"ok": False, "code": "validation_error", "error": "Request body must be a JSON object."},
                status=400,
            )
        return view(request, payload, *args, **kwargs)
    return wrapper


def _flag(value):
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")


# ----------------------------
# Deliveries
# ----------------------------
@require_http_methods(["GET", "POST"])
@api_view
def deliveries_view(request, payload):
    if request.method == "POST":
        return _respond(api.record_delivery(request.user, payload), success_status=201)
    params = request.GET
    return _respond(api.list_deliveries(
        request.user,
        kind=params.get("kind"),
        customer_id=params.get("customer_id"),
        start=params.get("start"),
        end=params.get("end"),
        verified=_flag(params.get("verified")),
    ))


@require_http_methods(["GET", "PATCH", "DELETE"])
@api_view
def delivery_detail_view(request, payload, entry_id):
    if request.method == "PATCH":
        return _respond(api.update_delivery(request.user, entry_id, payload))
    if request.method == "DELETE":
        return _respond(api.delete_delivery(request.user, entry_id))
    return _respond(api.get_delivery(request.user, entry_id))


# ----------------------------
# Bills
# ----------------------------
@require_http_methods(["POST"])
@api_view
def generate_bills_view(request, payload):
    return _respond(
        api.generate_bills(request.user, payload.get("period_start"), payload.get("period_end")),
        success_status=201,
    )


@require_http_methods(["GET", "DELETE"])
@api_view
def bill_detail_view(request, payload, bill_id):
    if request.method == "DELETE":
        return _respond(api.delete_bill(request.user, bill_id))
    return _respond(api.get_bill(request.user, bill_id))


# ----------------------------
# Payments
# ----------------------------
@require_http_methods(["GET", "POST"])
@api_view
def payments_view(request, payload):
    if request.method == "GET":
        return _respond(api.list_payments(request.user, request.GET.get("bill_id")))
    result = api.record_payment(
        request.user,
        payload.get("bill_id"),
        payload.get("amount"),
        payload.get("paid_on"),
        payload.get("method"),
        payload.get("notes"),
    )
    return _respond(result, success_status=201)


@require_http_methods(["DELETE"])
@api_view
def payment_detail_view(request, payload, payment_id):
    return _respond(api.delete_payment(request.user, payment_id))


# ----------------------------
# Invoices
# ----------------------------
@require_http_methods(["POST"])
@api_view
def invoices_view(request, payload):
    if "bill_ids" in payload:
        bill_ids = payload["bill_ids"]
        if not isinstance(bill_ids, list):
            return _respond(Result.failure("validation_error", "bill_ids must be a list."))
        return _respond(api.generate_invoices(request.user, bill_ids), success_status=201)
    return _respond(api.generate_invoice(request.user, payload.get("bill_id")), success_status=201)


@require_http_methods(["GET", "DELETE"])
@api_view
def invoice_detail_view(request, payload, invoice_key):
    if request.method == "DELETE":
        return _respond(api.delete_invoice(request.user, invoice_key))
    return _respond(api.get_invoice(request.user, invoice_key))
