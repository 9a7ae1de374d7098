from flask import Blueprint

bp = Blueprint("check_ins", __name__)

from . import routes  # noqa: E402,F401
