"""
Utility helpers for the DV-100 intake assistant

ID and filename generation for sessions and exported forms.
"""

import uuid
from datetime import datetime


def generate_session_id(short=True):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'a3f7e2b9'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def generate_form_filename(prefix="DV-100", extension="pdf"):
    """
    Timestamped filename for an exported form

    Format: {prefix}_{YYYYMMDD_HHMMSS}_{short_id}.{extension}

    Examples:
        >>> generate_form_filename()
        'DV-100_20251126_153045_a3f7e2b9.pdf'
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}_{generate_session_id()}.{extension}"
