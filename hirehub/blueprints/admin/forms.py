from wtforms import DateTimeField, DecimalField, IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional

from ...utils.forms import JSONForm


class ParseReplyForm(JSONForm):
    check_in_id = IntegerField("Check-in", validators=[DataRequired()])
    email_content = TextAreaField("Email content", validators=[DataRequired()])


class ManualFlagForm(JSONForm):
    introduction_id = IntegerField("Introduction", validators=[DataRequired()])
    notes = TextAreaField("Notes", validators=[DataRequired(), Length(max=5000)])
    estimated_salary = DecimalField("Estimated salary", validators=[Optional(), NumberRange(min=0)])
    fee_percentage = DecimalField("Fee %", validators=[Optional(), NumberRange(min=0, max=100)])


class FlagUpdateForm(JSONForm):
    status = StringField("Status", validators=[Optional()])
    estimated_salary = DecimalField("Estimated salary", validators=[Optional(), NumberRange(min=0)])
    fee_percentage = DecimalField("Fee %", validators=[Optional(), NumberRange(min=0, max=100)])
    resolution = StringField("Resolution", validators=[Optional(), Length(max=255)])
    resolution_notes = TextAreaField("Resolution notes", validators=[Optional()])


class SendInvoiceForm(JSONForm):
    invoice_amount = DecimalField("Amount", validators=[Optional()])
    due_date = DateTimeField("Due date", format=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"], validators=[Optional()])
    custom_message = TextAreaField("Message", validators=[Optional(), Length(max=5000)])


class CloseIntroductionForm(JSONForm):
    note = TextAreaField("Note", validators=[Optional(), Length(max=5000)])


class SettingForm(JSONForm):
    expected_version = IntegerField("Expected version", validators=[InputRequired(), NumberRange(min=0)])


class ManualResponseForm(JSONForm):
    response = StringField("Response", validators=[DataRequired()])
    note = TextAreaField("Note", validators=[Optional(), Length(max=5000)])
