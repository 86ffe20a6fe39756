from datetime import datetime, timezone


def current_timestamp() -> int:
    """
    Returns the current UTC time as whole Unix seconds.
    """
    return int(datetime.now(timezone.utc).timestamp())
