from flask import g, jsonify

from . import bp
from .forms import IntroductionRequestForm
from ...errors import NotFoundError
from ...models.employer import Employer
from ...services import introductions
from ...utils.decorators import employer_required
from ...utils.forms import validated


def _current_employer():
    employer = Employer.query.filter_by(user_id=g.user.id).first()
    if employer is None:
        raise NotFoundError('Employer profile not found', code='EMPLOYER_NOT_FOUND')
    return employer


@bp.post("/candidates/<int:candidate_id>/view")
@employer_required
def view_candidate(candidate_id):
    intro, created = introductions.record_profile_view(_current_employer().id, candidate_id)
    return jsonify({
        "introduction_id": intro.id,
        "created": created,
        "profile_views": intro.profile_views,
        "protection_ends_at": intro.protection_ends_at.isoformat(),
    }), 201 if created else 200


@bp.post("/introductions/request")
@employer_required
def request_introduction():
    form = validated(IntroductionRequestForm)
    intro, sent = introductions.request_introduction(_current_employer().id, form.candidate_id.data,
                                                     job_id=form.job_id.data)
    return jsonify({
        "success": True,
        "introduction_id": intro.id,
        "status": intro.status.value,
        "email_sent": sent,
    })
