from wtforms import IntegerField
from wtforms.validators import DataRequired, Optional

from ...utils.forms import JSONForm


class IntroductionRequestForm(JSONForm):
    candidate_id = IntegerField("Candidate", validators=[DataRequired()])
    job_id = IntegerField("Job", validators=[Optional()])
