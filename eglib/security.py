"""Log hygiene helpers.

Request events carry bearer tokens and identity claims; these helpers make
them safe to log.
"""

import re
from typing import Any, Dict, Mapping

# Control characters (0x00-0x1f except tab, and 0x7f-0x9f) that could be
# used for log injection or terminal escape sequences.
_LOG_UNSAFE_PATTERN = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')

_REDACTED = "<redacted>"
_SENSITIVE_HEADERS = {"authorization", "cookie", "x-api-key"}


def sanitize_for_log(value: Any, max_length: int = 200) -> str:
    """Sanitize a value for safe inclusion in log messages.

    Escapes newlines and control characters, then truncates to max_length.
    """
    if value is None:
        return "<none>"

    s = str(value)
    s = s.replace('\r\n', '\\r\\n').replace('\n', '\\n').replace('\r', '\\r')
    s = _LOG_UNSAFE_PATTERN.sub(lambda m: f'\\x{ord(m.group(0)):02x}', s)

    if len(s) > max_length:
        s = s[:max_length] + "..."
    return s


def redact_event(event: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of an API Gateway event that is safe to log.

    Sensitive headers are masked, authorizer claims are reduced to their
    names, and the body is dropped (it is logged separately once parsed).
    """
    redacted: Dict[str, Any] = {
        key: value for key, value in event.items() if key not in {"headers", "body", "requestContext"}
    }

    headers = event.get("headers") or {}
    redacted["headers"] = {
        name: (_REDACTED if name.lower() in _SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }

    request_context = dict(event.get("requestContext") or {})
    authorizer = request_context.get("authorizer")
    if isinstance(authorizer, Mapping):
        claims = authorizer.get("claims")
        if isinstance(claims, Mapping):
            request_context["authorizer"] = {"claims": sorted(claims.keys())}
        else:
            request_context["authorizer"] = _REDACTED
    redacted["requestContext"] = request_context
    redacted["hasBody"] = bool(event.get("body"))
    return redacted
