"""Share token shape validation.

Share tokens are three lowercase words joined by hyphens, e.g.
``swift-golden-dragon``. Only the shape is checked here; whether a
token exists or has expired is the share server's business.
"""

import re
from typing import Any

SHARE_TOKEN_PATTERN = re.compile(r"[a-z]+-[a-z]+-[a-z]+", re.ASCII)


def is_valid_share_token(token: Any) -> bool:
    """Check whether ``token`` has the adjective-adjective-noun shape."""
    if not isinstance(token, str):
        return False
    return SHARE_TOKEN_PATTERN.fullmatch(token) is not None
