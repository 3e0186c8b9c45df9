"""Dependency injection utilities."""
from typing import Optional

from fastapi import Cookie, Request, Response

from .services.flow import FlowMachine
from .services.registry import FlowRegistry

FLOW_COOKIE = "inspira_flow"


def flow_registry(request: Request) -> FlowRegistry:
    return request.app.state.flows


async def current_flow(
    request: Request,
    response: Response,
    inspira_flow: Optional[str] = Cookie(None),
) -> FlowMachine:
    """Resolve the caller's flow, opening a new one when the cookie is unknown."""
    registry = flow_registry(request)
    flow_id, machine = await registry.get_or_open(inspira_flow)
    if flow_id != inspira_flow:
        response.set_cookie(FLOW_COOKIE, flow_id, httponly=True, samesite="lax")
    return machine
