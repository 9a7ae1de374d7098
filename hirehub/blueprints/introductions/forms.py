from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from ...utils.forms import JSONForm


class IntroductionAnswerForm(JSONForm):
    response = StringField("Response", validators=[DataRequired()])
    message = TextAreaField("Message", validators=[Optional(), Length(max=5000)])
