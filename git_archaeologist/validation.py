"""Repository URL checks used to gate submission."""
from __future__ import annotations

import re
from typing import Any, Optional

INVALID_URL_REASON = "Enter a valid GitHub repo URL"

_REPOSITORY_URL = re.compile(r"^https?://github\.com/[^/]+/[^/]+")


def is_valid_repository_url(text: Any) -> bool:
    """Return True for ``http(s)://github.com/<owner>/<repo>...``.

    Only the scheme, host and two non-empty path segments are checked.
    """
    if not isinstance(text, str):
        return False
    return _REPOSITORY_URL.match(text) is not None


def invalid_reason(text: Any) -> Optional[str]:
    if is_valid_repository_url(text):
        return None
    return INVALID_URL_REASON
