import time
from typing import Callable, Iterable, Optional

from flask import current_app


def chunks(items, size):
    items = list(items)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def batch_process(items: Iterable, handler: Callable, batch_size: Optional[int] = None,
                  delay: Optional[float] = None, on_error: Optional[Callable] = None):
    """Run ``handler`` over ``items`` in batches with a pause between batches.

    A raising handler does not stop the run: ``on_error(item, exc)`` is
    called if given and the next item is processed.
    """
    cfg = current_app.config
    size = batch_size or cfg.get('CRON_BATCH_SIZE', 10)
    pause = cfg.get('CRON_BATCH_DELAY', 0.1) if delay is None else delay

    for n, batch in enumerate(chunks(items, size)):
        if n and pause:
            time.sleep(pause)
        for item in batch:
            try:
                handler(item)
            except Exception as exc:
                if on_error:
                    on_error(item, exc)
