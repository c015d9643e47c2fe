"""
Side-band values the OAuth2 runtime returns with a fetch response.

The container renders these as response metadata: the approval URL when
the user has to authorize, or the error fields when the fetch failed.
"""

import logging
import traceback

from core.http.models import HttpRequest, HttpResponse
from core.security.sanitize import sanitize_body, sanitize_headers, sanitize_url

logger = logging.getLogger(__name__)

APPROVAL_URL = "approval_url"
ERROR_CODE = "oauthError"
ERROR_TEXT = "oauthErrorText"
ERROR_URI = "oauthErrorUri"
ERROR_EXPLANATION = "oauthErrorExplanation"
ERROR_TRACE = "oauthErrorTrace"

MAX_TRACE_BODY = 2048


def _truncate(text: str) -> str:
    if len(text) <= MAX_TRACE_BODY:
        return text
    return f"{text[:MAX_TRACE_BODY]}... [{len(text) - MAX_TRACE_BODY} more]"


def format_request(request: HttpRequest) -> str:
    lines = [f"{request.method} {sanitize_url(request.uri)}"]
    lines.extend(f"{k}: {v}" for k, v in sanitize_headers(request.headers).items())
    if request.body:
        lines.append("")
        lines.append(_truncate(sanitize_body(request.body_text, request.content_type)))
    return "\n".join(lines)


def format_response(response: HttpResponse) -> str:
    lines = [f"HTTP {response.status}"]
    lines.extend(f"{k}: {v}" for k, v in sanitize_headers(response.headers).items())
    if response.body:
        lines.append("")
        lines.append(
            _truncate(sanitize_body(response.body_text, response.get_header("Content-Type")))
        )
    return "\n".join(lines)


class OAuth2ResponseParams:
    """
    Collects the approval URL and, when tracing is enabled, a redacted
    transcript of the requests made during one fetch.
    """

    def __init__(self, send_trace_to_client: bool = False):
        self.send_trace_to_client = send_trace_to_client
        self.authorization_url: str | None = None
        self._trace: list[str] = []

    def add_request_trace(self, request: HttpRequest | None, response: HttpResponse | None) -> None:
        if not self.send_trace_to_client:
            return
        entry = [f"==== Sent request {len(self._trace) + 1}:"]
        entry.append(format_request(request) if request is not None else "<null>")
        entry.append("==== Received response:")
        entry.append(format_response(response) if response is not None else "<null>")
        self._trace.append("\n".join(entry))

    def add_debug(self, message: str) -> None:
        if self.send_trace_to_client and message:
            self._trace.append(message)

    def add_exception(self, exc: BaseException | None) -> None:
        if exc is None or not self.send_trace_to_client:
            return
        self.add_debug("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    @property
    def trace(self) -> str:
        return "\n".join(self._trace)

    def add_to_response(
        self,
        response: HttpResponse,
        error_code: str,
        error_text: str,
        error_uri: str,
        error_explanation: str,
    ) -> None:
        """Attach the error fields (and the trace, when enabled) as metadata."""
        response.set_metadata(ERROR_CODE, error_code)
        response.set_metadata(ERROR_TEXT, error_text or "")
        response.set_metadata(ERROR_URI, error_uri or "")
        response.set_metadata(ERROR_EXPLANATION, error_explanation or "")
        if self.send_trace_to_client and self._trace:
            response.set_metadata(ERROR_TRACE, self.trace)


__all__ = [
    "APPROVAL_URL",
    "ERROR_CODE",
    "ERROR_TEXT",
    "ERROR_URI",
    "ERROR_EXPLANATION",
    "ERROR_TRACE",
    "OAuth2ResponseParams",
    "format_request",
    "format_response",
]
