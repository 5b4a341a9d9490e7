from app.utils.datetime_utils import ensure_utc, parse_hhmm, utcnow

__all__ = [
    "utcnow",
    "ensure_utc",
    "parse_hhmm",
]
