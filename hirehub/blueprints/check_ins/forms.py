from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from ...utils.forms import JSONForm


class CheckInAnswerForm(JSONForm):
    # the closed set is enforced by the response service, which reports the valid values
    status = StringField("Status", validators=[DataRequired()])
    message = TextAreaField("Message", validators=[Optional(), Length(max=5000)])
    start_date = StringField("Start date", validators=[Optional(), Length(max=100)])
    role_title = StringField("Role title", validators=[Optional(), Length(max=200)])
