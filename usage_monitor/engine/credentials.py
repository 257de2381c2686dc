from __future__ import annotations

import re

_TOKEN_PARAM = re.compile(r"token=([^&]+)")


def extract_token(value: str) -> str:
    """Return the bare token from a raw token or a portal URL.

    ``https://host/view?token=ABC.DEF&x=1`` yields ``ABC.DEF``. Input without a
    ``token=`` parameter is assumed to already be a bare token and is returned
    unchanged. The token format itself is not validated.
    """
    if "token=" not in value:
        return value
    match = _TOKEN_PARAM.search(value)
    if match:
        return match.group(1)
    return value
