from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from redis import Redis
from rq import Queue
from flask import current_app

# RQ kwargs that only make sense to the queue, never to the job function
_RQ_KEYS = {'job_timeout', 'timeout', 'at_front', 'depends_on', 'result_ttl', 'ttl', 'meta', 'description', 'job_id'}


class RQWrapper:
    def __init__(self):
        self.redis = None
        self.queue = None

    def init_app(self, app):
        if not app.config.get("RQ_ENABLED") or not app.config.get("REDIS_URL"):
            app.logger.info('RQ disabled, jobs run synchronously')
            self.redis = None
            self.queue = None
            return
        try:
            self.redis = Redis.from_url(app.config.get("REDIS_URL"))
            self.queue = Queue("default", connection=self.redis)
        except Exception:
            # no redis server (dev machine): keep the queue empty and
            # run jobs inline
            app.logger.exception('Redis/RQ init failed, falling back to sync execution')
            self.redis = None
            self.queue = None

    def _run_inline(self, args, kwargs):
        func = args[0] if args else None
        func_args = args[1:] if len(args) > 1 else ()
        safe_kwargs = {k: v for k, v in kwargs.items() if k not in _RQ_KEYS}
        if not func:
            return None
        try:
            return func(*func_args, **safe_kwargs)
        except Exception:
            current_app.logger.exception('Synchronous execution of %s failed', getattr(func, '__name__', func))
        return None

    def enqueue(self, *args, **kwargs):
        """Enqueue to RQ when available, otherwise call the function inline."""
        if not self.queue:
            return self._run_inline(args, kwargs)
        try:
            return self.queue.enqueue(*args, **kwargs)
        except Exception:
            current_app.logger.exception('RQ enqueue failed, falling back to sync execution')
            return self._run_inline(args, kwargs)

    @property
    def is_async(self):
        return self.queue is not None


db = SQLAlchemy()
login_manager = LoginManager()
rq = RQWrapper()
