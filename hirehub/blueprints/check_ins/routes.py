from flask import jsonify

from . import bp
from .forms import CheckInAnswerForm
from ...services import responses
from ...utils.forms import validated


@bp.get("/respond/<token>")
def check_in_context(token):
    return jsonify(responses.get_check_in_context(token))


@bp.post("/respond/<token>")
def answer_check_in(token):
    form = validated(CheckInAnswerForm)
    check_in, parsed, flag = responses.submit_structured_response(
        token,
        form.status.data,
        message=form.message.data or None,
        start_date=form.start_date.data or None,
        role_title=form.role_title.data or None,
    )
    return jsonify({
        "success": True,
        "status": parsed.status,
        "risk_level": parsed.risk_level.value,
        "flagged": check_in.flagged_for_review,
    })
