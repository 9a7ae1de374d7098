from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from ..errors import ValidationError


class JSONForm(FlaskForm):
    """Form fed from a JSON body; API clients carry no CSRF token."""

    class Meta:
        csrf = False


def json_formdata():
    """JSON object body as form data. Nulls are dropped so they read as absent."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None
    return MultiDict({k: str(v) for k, v in body.items() if v is not None})


def validated(form_cls, **kwargs):
    formdata = json_formdata()
    if formdata is not None:
        kwargs.setdefault('formdata', formdata)
    form = form_cls(**kwargs)
    if not form.validate():
        raise ValidationError('Invalid request', code='VALIDATION_ERROR', fields=form.errors)
    return form
