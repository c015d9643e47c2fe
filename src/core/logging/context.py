"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="")
_gadget_uri: ContextVar[str] = ContextVar("gadget_uri", default="")
_service_name: ContextVar[str] = ContextVar("service_name", default="")
_component: ContextVar[str] = ContextVar("component", default="")


def set_log_context(
    request_id: Optional[str] = None,
    gadget_uri: Optional[str] = None,
    service_name: Optional[str] = None,
    component: Optional[str] = None,
) -> None:
    if request_id is not None:
        _request_id.set(request_id)
    if gadget_uri is not None:
        _gadget_uri.set(gadget_uri)
    if service_name is not None:
        _service_name.set(service_name)
    if component is not None:
        _component.set(component)


def get_log_context() -> Dict[str, str]:
    return {
        "request_id": _request_id.get(),
        "gadget_uri": _gadget_uri.get(),
        "service_name": _service_name.get(),
        "component": _component.get(),
    }


def clear_log_context() -> None:
    _request_id.set("")
    _gadget_uri.set("")
    _service_name.set("")
    _component.set("")
