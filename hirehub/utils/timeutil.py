from datetime import datetime, timezone


def utcnow():
    """Naive UTC now; every DateTime column in the app stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
