"""
Log redaction helpers.

Route requests reveal where people walk, so precise coordinates and report
identifiers never go into log lines verbatim:

    lat, lng = redact_coordinates(origin['lat'], origin['lng'])
    logger.info(f"Routing from ({lat}, {lng})")        # Routing from (48.86, 2.35)

    logger.warning(f"Skipping report {hash_identifier(report_id)}")
    logger.error(redact_pii(f"Provider failed: {e}"))  # strips coordinates from upstream messages
"""

import hashlib
import re
from typing import Any, Optional, Tuple

# 4+ decimal places is building-level precision
PRECISE_COORDINATE_PATTERN = re.compile(r'-?\d{1,3}\.\d{4,}')


def redact_pii(text: str) -> str:
    """
    Replace precise coordinates in a message with a placeholder.

    Numbers with 1-3 decimals (city/street level) are left alone so messages
    stay useful for debugging.

    Examples:
        >>> redact_pii("Location: 48.85661, 2.35222")
        'Location: [COORD_REDACTED], [COORD_REDACTED]'
    """
    if not text:
        return text
    return PRECISE_COORDINATE_PATTERN.sub('[COORD_REDACTED]', text)


def hash_identifier(identifier: Any, length: int = 16) -> str:
    """Truncated SHA-256 of a report id, or '[NO_ID]' when there is none."""
    if identifier is None or identifier == '':
        return '[NO_ID]'
    return hashlib.sha256(str(identifier).encode()).hexdigest()[:length]


def redact_coordinates(lat: Optional[float], lng: Optional[float], precision: int = 2) -> Tuple[str, str]:
    """
    Format a coordinate pair at reduced precision for logging.

    Two decimals (~1.1 km, neighbourhood level) is the default; anything past
    three decimals pins down a single building.

    Examples:
        >>> redact_coordinates(48.8566, 2.3522)
        ('48.86', '2.35')
        >>> redact_coordinates(None, 2.35)
        ('[REDACTED]', '[REDACTED]')
    """
    if lat is None or lng is None:
        return '[REDACTED]', '[REDACTED]'
    return f"{lat:.{precision}f}", f"{lng:.{precision}f}"
