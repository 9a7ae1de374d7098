from flask import Blueprint

bp = Blueprint("employer", __name__)

from . import routes  # noqa: E402,F401
