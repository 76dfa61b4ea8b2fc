import re
import secrets
from datetime import datetime, timezone

TRACKING_ID_PATTERN = re.compile(r"^[A-Z]+-\d{8}-[0-9A-F]{8}$")


def generate_tracking_id(prefix: str = "ZP", now: datetime = None) -> str:
    """Return ``<PREFIX>-<YYYYMMDD>-<8 hex>`` for the current UTC day.

    Four random bytes make collisions unlikely but possible; the
    transaction id, not this value, is what keeps payments unique.
    """
    now = now or datetime.now(timezone.utc)
    date_part = now.astimezone(timezone.utc).strftime("%Y%m%d")
    random_part = secrets.token_hex(4).upper()
    return f"{prefix}-{date_part}-{random_part}"
