"""Gesture endpoints of the landing/tutorial flow."""
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from ..deps import current_flow
from ..domain.schemas import FlowStateOut, PromptRequest, SignInRequest
from ..services.flow import FlowMachine

router = APIRouter()


def _state(machine: FlowMachine) -> FlowStateOut:
    return FlowStateOut(**machine.snapshot())


@router.get("", response_model=FlowStateOut)
async def get_state(machine: FlowMachine = Depends(current_flow)):
    return _state(machine)


@router.post("/prompt", response_model=FlowStateOut)
async def submit_prompt(payload: PromptRequest, machine: FlowMachine = Depends(current_flow)):
    machine.submit_prompt(payload.link)
    return _state(machine)


@router.post("/login", response_model=FlowStateOut)
async def sign_in(payload: SignInRequest, machine: FlowMachine = Depends(current_flow)):
    await machine.sign_in(payload.provider.value, payload.credential())
    return _state(machine)


@router.post("/login/dismiss", response_model=FlowStateOut)
async def dismiss_login(machine: FlowMachine = Depends(current_flow)):
    machine.dismiss_popup()
    return _state(machine)


@router.post("/secret-click", response_model=FlowStateOut)
async def secret_click(machine: FlowMachine = Depends(current_flow)):
    machine.secret_click()
    return _state(machine)


@router.post("/admin/close", response_model=FlowStateOut)
async def close_admin(machine: FlowMachine = Depends(current_flow)):
    machine.close_admin()
    return _state(machine)


@router.post("/enroll", response_model=FlowStateOut)
async def enroll(machine: FlowMachine = Depends(current_flow)):
    await machine.enroll()
    return _state(machine)


@router.get("/admin/report")
async def download_report(machine: FlowMachine = Depends(current_flow)):
    """Download every tester application as CSV (admin panel only)."""
    if not machine.state.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin mode is not active")
    report = await machine.download_report()
    if report is None:
        code = status.HTTP_404_NOT_FOUND if machine.state.notice else status.HTTP_503_SERVICE_UNAVAILABLE
        return JSONResponse(status_code=code, content=_state(machine).model_dump(mode="json"))
    return Response(
        content=report.payload,
        media_type=report.media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(report.filename)}"},
    )
