"""
Commands Router - notebook command execution and history
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import error_response, success_response
from crud.command_execution import CommandExecutionRepository
from database import get_db
from models.command import CommandRequest
from services.command_parser import expand_shorthand
from services.command_service import CommandService
from utils.shared_utils import log_endpoint_event

logger = logging.getLogger(__name__)

commands_router = APIRouter(prefix="/api/commands", tags=["commands"])


@commands_router.post("/execute")
async def execute_command(
    request: CommandRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Execute a notebook command such as "!generateTrial netflix".

    Every outcome is recorded in the command history and the ledger entry is
    returned. Parse and generation failures come back as 200 with
    status "error"; a user without a usable package gets 403.
    """
    user_id = current_user["user_id"]
    command = request.command.strip()
    if request.shorthand:
        command = expand_shorthand(command)

    outcome = await CommandService(db).execute(user_id, command)
    entry = outcome.to_dict()
    log_endpoint_event(
        "/commands/execute",
        user_id=user_id,
        result=entry["status"],
        details={"service": entry["serviceName"], "message": entry["message"]},
    )

    if outcome.succeeded:
        return success_response(data=entry, message=entry["message"])
    return error_response(
        outcome.error_code or "command_failed",
        status=outcome.http_status,
        message=entry["message"],
        data=entry,
    )


@commands_router.get("/history")
async def command_history(
    limit: int = Query(default=50, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's command executions, newest first."""
    executions = await CommandExecutionRepository(db).history(current_user["user_id"], limit=limit)
    return success_response(data=[execution.to_dict() for execution in executions])
