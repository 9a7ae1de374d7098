from flask import jsonify

from . import bp
from .forms import IntroductionAnswerForm
from ...services import introductions
from ...utils.forms import validated


@bp.get("/respond/<token>")
def introduction_context(token):
    return jsonify({"introduction": introductions.get_introduction_context(token)})


@bp.post("/respond/<token>")
def answer_introduction(token):
    form = validated(IntroductionAnswerForm)
    intro = introductions.respond_to_introduction(token, form.response.data.strip().upper(),
                                                  message=form.message.data or None)
    return jsonify({
        "success": True,
        "status": intro.status.value,
        "response": intro.candidate_response.value,
    })
