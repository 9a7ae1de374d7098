from flask import current_app, jsonify, request

from . import bp
from ...extensions import rq
from ...jobs.check_ins import run_check_in_scheduler
from ...jobs.expiry_alerts import run_expiry_alerts
from ...jobs.guarantee_checks import run_guarantee_checks
from ...utils.decorators import cron_auth_required

CRON_JOBS = {
    "check-ins": run_check_in_scheduler,
    "expiry-alerts": run_expiry_alerts,
    "guarantee-checks": run_guarantee_checks,
}


def _run(name):
    func = CRON_JOBS[name]
    if request.args.get("async") and rq.is_async:
        job = rq.enqueue(func, job_timeout=900)
        job_id = getattr(job, "id", None)
        current_app.logger.info("[cron] %s queued as %s", name, job_id)
        return jsonify({"success": True, "queued": True, "job_id": job_id}), 202
    result = func()
    current_app.logger.info('[cron] %s finished with %d errors', name, len(result.errors))
    return jsonify({"success": True, "job": name, **vars(result)})


@bp.route("/check-ins", methods=["GET", "POST"])
@cron_auth_required
def cron_check_ins():
    return _run("check-ins")


@bp.route("/expiry-alerts", methods=["GET", "POST"])
@cron_auth_required
def cron_expiry_alerts():
    return _run("expiry-alerts")


@bp.route("/guarantee-checks", methods=["GET", "POST"])
@cron_auth_required
def cron_guarantee_checks():
    return _run("guarantee-checks")
