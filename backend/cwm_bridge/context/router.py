# =============================
# backend/cwm_bridge/context/router.py
# =============================
from __future__ import annotations
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from .models import (
    CreateContextResponse, ConnectRequest, ConnectResponse,
    ConditionsRequest, ExecuteCommandRequest, DeleteContextResponse,
)
from .registry import registry
from ..errors import ConnectionFailed, ExternalCommandFailed
from ..powershell.bootstrap import ConnectionBootstrapper
from ..powershell.executor import CwmClient, is_session_lost
from ..powershell.formatter import Params

log = logging.getLogger(__name__)
router = APIRouter(prefix="/context", tags=["context"])

bootstrapper = ConnectionBootstrapper()
cwm = CwmClient()


def _run_command(context_id: str, command: str, params: Params = None) -> Any:
    """Touch the context, authenticate lazily and run ``command``."""
    registry.touch(context_id)
    ctx = registry.get(context_id)
    try:
        bundles = bootstrapper.candidates(ctx)
        result = cwm.execute(command, params, bundles, secrets=bootstrapper.secrets())
    except ConnectionFailed:
        registry.mark_disconnected(context_id)
        raise
    except ExternalCommandFailed as e:
        if is_session_lost(e):
            log.warning("Context %s lost its ConnectWise session", context_id)
            registry.mark_disconnected(context_id)
        raise
    registry.mark_connected(context_id)
    return result


def _condition_params(req: Optional[ConditionsRequest]) -> dict:
    params = {}
    if req and req.conditions:
        params["Condition"] = req.conditions
    return params


@router.post("", response_model=CreateContextResponse)
def create_context():
    return CreateContextResponse(contextId=registry.create())


@router.post("/{context_id}/connect", response_model=ConnectResponse)
def connect(context_id: str, req: Optional[ConnectRequest] = None):
    registry.touch(context_id)
    overrides = (req or ConnectRequest()).overrides()
    bundle = bootstrapper.resolve(overrides)
    try:
        cwm.connect(bundle)
    except ConnectionFailed:
        registry.mark_disconnected(context_id)
        raise
    # only explicitly supplied credentials are staged on the context
    staged = bundle if any(overrides.values()) else None
    registry.mark_connected(context_id, credentials=staged)
    return ConnectResponse(message="Successfully connected to ConnectWise Manage")


@router.post("/{context_id}/getSystemInfo")
def get_system_info(context_id: str):
    return _run_command(context_id, "Get-CWMSystemInfo")


@router.post("/{context_id}/getCompanies")
def get_companies(context_id: str, req: Optional[ConditionsRequest] = None):
    return _run_command(context_id, "Get-CWMCompany", _condition_params(req))


@router.post("/{context_id}/getTickets")
def get_tickets(context_id: str, req: Optional[ConditionsRequest] = None):
    return _run_command(context_id, "Get-CWMTicket", _condition_params(req))


@router.post("/{context_id}/executeCommand")
def execute_command(context_id: str, req: Optional[ExecuteCommandRequest] = None):
    registry.get(context_id)
    if req is None or not req.command:
        raise HTTPException(400, "Command is required")
    return _run_command(context_id, req.command, req.params)


@router.delete("/{context_id}", response_model=DeleteContextResponse)
def delete_context(context_id: str):
    if not registry.delete(context_id):
        raise HTTPException(404, f"Context {context_id} not found")
    return DeleteContextResponse(message=f"Context {context_id} has been deleted")
