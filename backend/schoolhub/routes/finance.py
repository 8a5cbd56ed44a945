# Overview: Flask API routes for finance operations; parses input and returns JSON responses.

"""
Finance API Routes

WHY: Money moves in two ledgers. The wallet ledger backs canteen spending;
the invoice ledger backs school fees. Both are only changed through their
services (wallet_service/ledger_service, payment_service).

SECURITY:
- Parents: top up and view their own children's wallets
- School admins and finance staff: fees, invoices, payments, adjustments
- Every money-moving action is written to the audit log
"""

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_roles, require_school
from ..errors import ApiError
from ..responses import ResponseSink, ok, fail, fail_from
from ..roles import FINANCE_ADMIN_ROLES, TOPUP_ROLES, WALLET_HISTORY_ROLES
from ..services import audit_service, payment_service, wallet_service
from ..validation import (
    parse_choice_field,
    parse_date_field,
    parse_int_field,
    parse_query_int,
    parse_str_field,
    require_json,
)


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


# =============================================================================
# WALLET
# =============================================================================

@finance_bp.post("/wallet/topup")
@require_auth
@require_roles(*TOPUP_ROLES)
@require_school
def wallet_topup_route():
    """
    Credit a student's canteen wallet.

    Request body:
    {
        "student_id": 7,
        "amount_cents": 2000
    }

    Returns:
        200: New balance and the ledger entry
        400: VALIDATION_ERROR
        403: TENANT_FORBIDDEN (parent topping up someone else's child)
        404: Student not in your school
    """
    try:
        data = require_json(request.get_json(silent=True))
        student_id = parse_int_field(data, "student_id", minimum=1)
        amount_cents = parse_int_field(data, "amount_cents", minimum=1)

        student, txn = wallet_service.topup_wallet(g.identity, student_id, amount_cents)

        return ok({
            "student_id": student.id,
            "wallet_balance_cents": student.wallet_balance_cents,
            "transaction": txn.to_dict(),
        })

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to top up wallet")
        return fail(500, "Internal server error", "SERVER_ERROR")


@finance_bp.post("/wallet/adjust")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def wallet_adjust_route():
    """
    Manual wallet correction.

    Request body:
    {
        "student_id": 7,
        "amount_cents": -300,        (signed, non-zero)
        "type": "refund",            (refund | adjustment)
        "description": "Double charge on 2026-10-01"
    }
    """
    try:
        data = require_json(request.get_json(silent=True))
        student_id = parse_int_field(data, "student_id", minimum=1)
        amount_cents = parse_int_field(data, "amount_cents")
        txn_type = parse_choice_field(data, "type", wallet_service.ADJUSTMENT_TYPES)
        description = parse_str_field(data, "description", required=False)

        student, txn = wallet_service.adjust_wallet(
            g.identity, student_id, amount_cents, txn_type, description
        )

        return ok({
            "student_id": student.id,
            "wallet_balance_cents": student.wallet_balance_cents,
            "transaction": txn.to_dict(),
        })

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to adjust wallet")
        return fail(500, "Internal server error", "SERVER_ERROR")


@finance_bp.get("/wallet/<int:student_id>/history")
@require_auth
@require_roles(*WALLET_HISTORY_ROLES)
@require_school
def wallet_history_route(student_id: int):
    """
    Wallet ledger for a student, newest first.

    Query params:
        limit: 1-200 (default 50)
        type: topup | purchase | refund | adjustment
    """
    try:
        limit = parse_query_int(request.args, "limit", default=50, minimum=1, maximum=200)
        txn_type = request.args.get("type") or None

        sink = ResponseSink()
        result = wallet_service.wallet_history(g.identity, sink, student_id, txn_type=txn_type, limit=limit)
        if sink.written:
            return sink.to_response()

        student, entries = result
        return ok(
            {
                "student_id": student.id,
                "wallet_balance_cents": student.wallet_balance_cents,
                "transactions": entries,
            },
            meta={"count": len(entries), "limit": limit},
        )

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to load wallet history")
        return fail(500, "Internal server error", "SERVER_ERROR")


# =============================================================================
# FEE STRUCTURES
# =============================================================================

@finance_bp.post("/fee-structures")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def create_fee_structure_route():
    """
    Request body:
    {
        "name": "Tuition",
        "academic_year": "2026-2027",
        "total_amount_cents": 350000
    }
    """
    try:
        data = require_json(request.get_json(silent=True))

        fee = payment_service.create_fee_structure(
            g.identity,
            name=parse_str_field(data, "name"),
            academic_year=parse_str_field(data, "academic_year", max_length=16),
            total_amount_cents=parse_int_field(data, "total_amount_cents", minimum=1),
        )
        return ok(fee.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to create fee structure")
        return fail(500, "Internal server error", "SERVER_ERROR")


@finance_bp.get("/fee-structures")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def list_fee_structures_route():
    fees = payment_service.list_fee_structures(g.identity)
    return ok([f.to_dict() for f in fees], meta={"count": len(fees)})


# =============================================================================
# INVOICES
# =============================================================================

@finance_bp.post("/invoices")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def issue_invoice_route():
    """
    Request body:
    {
        "student_id": 7,
        "fee_structure_id": 2,
        "due_date": "2026-11-30"     (optional)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))

        invoice = payment_service.issue_invoice(
            g.identity,
            student_id=parse_int_field(data, "student_id", minimum=1),
            fee_structure_id=parse_int_field(data, "fee_structure_id", minimum=1),
            due_date=parse_date_field(data, "due_date"),
        )
        return ok(invoice.to_dict(), status_code=201)

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to issue invoice")
        return fail(500, "Internal server error", "SERVER_ERROR")


@finance_bp.get("/invoices")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def list_invoices_route():
    """Query params: student_id, status"""
    try:
        student_id = parse_query_int(request.args, "student_id", default=None, minimum=1, maximum=2**31 - 1)
        invoices = payment_service.list_invoices(
            g.identity, student_id=student_id, status=request.args.get("status") or None
        )
        return ok([i.to_dict() for i in invoices], meta={"count": len(invoices)})

    except ApiError as e:
        return fail_from(e)


@finance_bp.post("/invoices/<int:invoice_id>/payments")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def record_payment_route(invoice_id: int):
    """
    Record a payment against an invoice.

    Request body:
    {
        "amount_cents": 50000,
        "method": "cash"       (card | cash | bank_transfer | cliq)
    }

    Returns:
        200: Updated invoice
        400: VALIDATION_ERROR
        403: TENANT_FORBIDDEN
        404: Invoice not found
        409: CONFLICT, invoice already paid or cancelled
    """
    try:
        data = require_json(request.get_json(silent=True))
        amount_cents = parse_int_field(data, "amount_cents", minimum=1)
        method = parse_choice_field(data, "method", payment_service.VALID_METHODS)

        sink = ResponseSink()
        invoice = payment_service.record_payment(g.identity, invoice_id, amount_cents, method, sink)
        if sink.written:
            return sink.to_response()

        return ok(invoice.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return fail(500, "Internal server error", "SERVER_ERROR")


@finance_bp.post("/invoices/<int:invoice_id>/cancel")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def cancel_invoice_route(invoice_id: int):
    try:
        sink = ResponseSink()
        invoice = payment_service.cancel_invoice(g.identity, invoice_id, sink)
        if sink.written:
            return sink.to_response()

        return ok(invoice.to_dict())

    except ApiError as e:
        return fail_from(e)
    except Exception:
        current_app.logger.exception("Failed to cancel invoice")
        return fail(500, "Internal server error", "SERVER_ERROR")


# =============================================================================
# AUDIT
# =============================================================================

@finance_bp.get("/audit-logs")
@require_auth
@require_roles(*FINANCE_ADMIN_ROLES)
@require_school
def audit_logs_route():
    """Query params: action_type, limit (1-500, default 100)"""
    try:
        limit = parse_query_int(request.args, "limit", default=100, minimum=1, maximum=500)
        logs = audit_service.list_audit_logs(
            g.identity, action_type=request.args.get("action_type") or None, limit=limit
        )
        return ok([entry.to_dict() for entry in logs], meta={"count": len(logs)})

    except ApiError as e:
        return fail_from(e)
