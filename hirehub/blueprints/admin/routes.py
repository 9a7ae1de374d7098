import math

from flask import g, jsonify, request

from . import bp
from .forms import (
    CloseIntroductionForm, FlagUpdateForm, ManualFlagForm, ManualResponseForm, ParseReplyForm, SendInvoiceForm,
    SettingForm,
)
from ...errors import ValidationError
from ...jobs.check_ins import resend_check_in, run_check_in_scheduler
from ...jobs.expiry_alerts import run_expiry_alerts, send_final_check_in
from ...services import circumvention, introductions, responses, settings
from ...utils.decorators import admin_required
from ...utils.forms import validated
from ...utils.timeutil import utcnow


def _json_body():
    return request.get_json(silent=True) or {}


# --- check-ins ------------------------------------------------------------

@bp.get("/check-ins/parse-reply")
@admin_required
def check_ins_for_review():
    status = request.args.get("status", "pending")
    items = responses.list_check_ins_for_review(status)
    return jsonify({"check_ins": [c.to_dict() for c in items], "count": len(items)})


@bp.post("/check-ins/parse-reply")
@admin_required
def parse_reply():
    form = validated(ParseReplyForm)
    check_in, parsed, flag, created = responses.parse_free_text_reply(form.check_in_id.data,
                                                                      form.email_content.data)
    return jsonify({
        "success": True,
        "check_in_id": check_in.id,
        "parsed": parsed.to_dict(),
        "flag_created": created,
        "flag_id": flag.id if flag is not None else None,
    })


@bp.post("/check-ins/run-scheduler")
@admin_required
def run_scheduler():
    result = run_check_in_scheduler()
    return jsonify({"success": True, **vars(result)})


@bp.post("/check-ins/<int:check_in_id>/resend")
@admin_required
def resend(check_in_id):
    check_in, mail = resend_check_in(check_in_id)
    return jsonify({
        "success": mail.success,
        "check_in_id": check_in.id,
        "check_in_number": check_in.check_in_number,
        "sent_to": check_in.introduction.candidate.email,
        "error": mail.error,
    }), 200 if mail.success else 502


# --- introductions --------------------------------------------------------

@bp.post("/introductions/run-expiry-check")
@admin_required
def run_expiry_check():
    result = run_expiry_alerts()
    return jsonify({"success": True, **vars(result)})


def _page_args(default_per_page=20):
    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", default_per_page, type=int), 100)
    return page, per_page


def _days_between(later, earlier):
    return math.ceil((later - earlier).total_seconds() / 86400)


@bp.get("/introductions/expiring")
@admin_required
def expiring_introductions():
    now = utcnow()
    page, per_page = _page_args()
    pagination = introductions.list_expiring_introductions(
        request.args.get("within_days", 7, type=int), page=page, per_page=per_page, now=now)
    items = []
    for intro in pagination.items:
        row = intro.to_dict()
        row["days_until_expiry"] = _days_between(intro.protection_ends_at, now)
        items.append(row)
    return jsonify({
        "introductions": items,
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "counts": introductions.expiry_counts(now=now),
    })


@bp.get("/introductions/expired")
@admin_required
def expired_introductions():
    now = utcnow()
    page, per_page = _page_args()
    pagination = introductions.list_expired_introductions(
        request.args.get("since_days", 30, type=int), page=page, per_page=per_page, now=now)
    items = []
    for intro in pagination.items:
        row = intro.to_dict()
        row["days_since_expiry"] = _days_between(now, intro.protection_ends_at)
        items.append(row)
    return jsonify({
        "introductions": items,
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "counts": introductions.expiry_counts(now=now),
    })


@bp.post("/introductions/<int:introduction_id>/manual-response")
@admin_required
def manual_response(introduction_id):
    form = validated(ManualResponseForm)
    intro = introductions.record_manual_response(introduction_id, form.response.data,
                                                 note=form.note.data or None, author=g.user.email)
    return jsonify({
        "success": True,
        "status": intro.status.value,
        "candidate_response": intro.candidate_response.value,
    })


@bp.post("/introductions/<int:introduction_id>/final-check-in")
@admin_required
def final_check_in(introduction_id):
    check_in, mail = send_final_check_in(introduction_id)
    return jsonify({
        "success": mail.success,
        "check_in_id": check_in.id,
        "check_in_number": check_in.check_in_number,
        "error": mail.error,
    }), 200 if mail.success else 502


@bp.post("/introductions/<int:introduction_id>/close")
@admin_required
def close_introduction(introduction_id):
    form = validated(CloseIntroductionForm)
    intro = introductions.close_without_hire(introduction_id, note=form.note.data or None,
                                             author=g.user.email)
    return jsonify({"success": True, "status": intro.status.value})


# --- circumvention flags --------------------------------------------------

@bp.get("/circumvention")
@admin_required
def list_flags():
    page, per_page = _page_args()
    pagination = circumvention.list_flags(request.args.get("status"), page=page, per_page=per_page)
    return jsonify({
        "flags": [f.to_dict() for f in pagination.items],
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
    })


@bp.post("/circumvention")
@admin_required
def create_flag():
    form = validated(ManualFlagForm)
    flag, created = circumvention.create_manual_flag(
        form.introduction_id.data, form.notes.data, reported_by=g.user.email,
        estimated_salary=form.estimated_salary.data, fee_percentage=form.fee_percentage.data,
    )
    return jsonify({"flag": flag.to_dict(), "created": created}), 201 if created else 200


@bp.get("/circumvention/<int:flag_id>")
@admin_required
def get_flag(flag_id):
    return jsonify({"flag": circumvention.get_flag(flag_id).to_dict()})


@bp.patch("/circumvention/<int:flag_id>")
@admin_required
def update_flag(flag_id):
    form = validated(FlagUpdateForm)
    body = _json_body()
    kwargs = {}
    # explicit null clears a money field, absent leaves it alone
    for name in ("estimated_salary", "fee_percentage"):
        if name in body:
            kwargs[name] = getattr(form, name).data
    flag = circumvention.update_flag(
        flag_id,
        status=form.status.data or None,
        resolution=form.resolution.data or None,
        resolution_notes=body.get("resolution_notes"),
        **kwargs,
    )
    return jsonify({"flag": flag.to_dict()})


@bp.delete("/circumvention/<int:flag_id>")
@admin_required
def delete_flag(flag_id):
    circumvention.delete_flag(flag_id)
    return jsonify({"success": True})


@bp.post("/circumvention/<int:flag_id>/send-invoice")
@admin_required
def send_invoice(flag_id):
    form = validated(SendInvoiceForm)
    result = circumvention.send_invoice(
        flag_id,
        invoice_amount=form.invoice_amount.data,
        due_date=form.due_date.data,
        custom_message=form.custom_message.data or None,
    )
    return jsonify({
        "success": True,
        "invoice_number": result.number,
        "amount": str(result.amount),
        "sent_to": result.sent_to,
        "due_date": result.due_date.isoformat(),
        "admin_copy_sent": result.admin_copy_sent,
    })


# --- settings -------------------------------------------------------------

@bp.get("/settings/<key>")
@admin_required
def get_setting(key):
    value, version = settings.read_setting(key)
    return jsonify({"key": key, "value": value, "version": version})


@bp.put("/settings/<key>")
@admin_required
def put_setting(key):
    form = validated(SettingForm)
    body = _json_body()
    if "value" not in body:
        raise ValidationError("value is required")
    version = settings.write_setting(key, body["value"], form.expected_version.data)
    return jsonify({"key": key, "value": body["value"], "version": version})
