"""Configuration constants for the stats engine and reporting pipeline."""
from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


def _int_from_env(name: str, default: int, minimum: int = 0) -> int:
    raw_val = os.getenv(name)
    if raw_val is None or not raw_val.strip():
        return default
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; falling back to %s.", name, raw_val, default)
        return default
    if parsed < minimum:
        logger.warning(
            "Ignoring %s=%s (must be >= %s); falling back to %s.",
            name,
            raw_val,
            minimum,
            default,
        )
        return default
    return parsed


def _fraction_from_env(name: str, default: float) -> float:
    raw_val = os.getenv(name)
    if raw_val is None or not raw_val.strip():
        return default
    try:
        parsed = float(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; falling back to %s.", name, raw_val, default)
        return default
    # Above one half the top and bottom buckets would overlap.
    if not 0 < parsed <= 0.5:
        logger.warning(
            "Ignoring %s=%s (must be in (0, 0.5]); falling back to %s.",
            name,
            raw_val,
            default,
        )
        return default
    return parsed


# Fraction of rated responses placed in each of the top and bottom buckets
BUCKET_FRACTION: float = _fraction_from_env("STATS_BUCKET_FRACTION", 0.2)

# Maximum comments extracted into each bucket
MAX_COMMENTS_PER_BUCKET: int = _int_from_env("STATS_MAX_COMMENTS_PER_BUCKET", 5)

# Decimal places kept for stored ratings
RATING_DECIMALS: int = _int_from_env("STATS_RATING_DECIMALS", 2)

# Valid rating range (inclusive)
RATING_MIN: int = 1
RATING_MAX: int = 5

# Maximum number of per-question rows shown in the report
MAX_QUESTIONS: int = _int_from_env("REPORT_MAX_QUESTIONS", 20)

# Width of the text bar drawn for each rating bucket
MAX_DISTRIBUTION_BAR: int = _int_from_env("REPORT_MAX_DISTRIBUTION_BAR", 20, minimum=1)

# Reports at or above this length are uploaded as a file instead of a message
SLACK_MESSAGE_LIMIT: int = _int_from_env("REPORT_SLACK_MESSAGE_LIMIT", 2800, minimum=1)
