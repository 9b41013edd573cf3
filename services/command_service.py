"""
Command Service - executes notebook commands end to end

parse -> reserve credit -> run pipeline -> release on failure -> ledger -> note
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.orchestrator import TrialOrchestrator
from crud.command_execution import CommandExecutionRepository, STATUS_ERROR, STATUS_SUCCESS
from crud.note import NoteRepository
from database_models import CommandExecution
from services.command_parser import CommandParseError, parse_command
from services.entitlement_service import EntitlementGuard
from services.trial_note_formatter import format_trial_markdown

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE = "unknown"
TRIAL_NOTE_COLOR = "green"
GENERATION_INTERRUPTED_MESSAGE = "Trial generation was interrupted before it finished"


@dataclass
class CommandOutcome:
    execution: CommandExecution
    trial_data: Optional[Dict[str, Any]] = None
    http_status: int = 200
    error_code: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.execution.status == STATUS_SUCCESS

    def to_dict(self) -> dict:
        return self.execution.to_dict()


class CommandService:
    """
    Runs one command for one user and writes exactly one ledger entry for it,
    whichever way it ends.
    """

    def __init__(
        self,
        db: AsyncSession,
        orchestrator: Optional[TrialOrchestrator] = None,
        guard: Optional[EntitlementGuard] = None,
    ):
        self.db = db
        self.orchestrator = orchestrator or TrialOrchestrator()
        self.guard = guard or EntitlementGuard(db)
        self.ledger = CommandExecutionRepository(db)
        self.notes = NoteRepository(db)

    async def _finish(
        self,
        user_id: int,
        command: str,
        service_name: str,
        status: str,
        message: str,
        trial_data: Optional[Dict[str, Any]] = None,
        http_status: int = 200,
        error_code: Optional[str] = None,
    ) -> CommandOutcome:
        execution = await self.ledger.record(
            user_id=user_id,
            command=command,
            service_name=service_name,
            status=status,
            message=message,
            trial_data=trial_data,
        )
        await self.db.commit()
        return CommandOutcome(
            execution=execution, trial_data=trial_data, http_status=http_status, error_code=error_code
        )

    async def execute(self, user_id: int, raw_command: str) -> CommandOutcome:
        """
        Execute a command.

        Args:
            user_id: Requesting user
            raw_command: Command text as typed, e.g. "!generateTrial netflix"

        Returns:
            CommandOutcome holding the ledger entry. http_status is 403 when
            the user was not entitled, 200 otherwise.
        """
        try:
            intent = parse_command(raw_command)
        except CommandParseError as e:
            logger.info(f"Rejected malformed command from user {user_id}: {raw_command!r}")
            return await self._finish(
                user_id, raw_command, UNKNOWN_SERVICE, STATUS_ERROR, e.message,
                error_code="invalid_command",
            )

        service_name = intent.service_name
        decision, reservation = await self.guard.reserve(user_id)
        if not decision.allowed:
            return await self._finish(
                user_id, raw_command, service_name, STATUS_ERROR, decision.message,
                http_status=403, error_code=decision.reason.value,
            )

        try:
            result = await self.orchestrator.generate(service_name, intent.parameters, user_id)
        except BaseException:
            # Cancelled or crashed mid-pipeline: the reserved credit goes back
            # and the attempt is still ledgered before the error propagates
            logger.warning(f"Trial generation for {service_name} (user {user_id}) was interrupted")
            await self.guard.release(reservation)
            await self._finish(
                user_id, raw_command, service_name, STATUS_ERROR, GENERATION_INTERRUPTED_MESSAGE,
                error_code="generation_interrupted",
            )
            raise

        if not result.success:
            await self.guard.release(reservation)
            return await self._finish(
                user_id, raw_command, service_name, STATUS_ERROR, result.message,
                error_code="generation_failed",
            )

        await self.notes.create_note(
            user_id=user_id,
            title=f"{service_name} Trial Details",
            content=format_trial_markdown(service_name, result.data),
            color=TRIAL_NOTE_COLOR,
            is_pinned=True,
        )
        logger.info(f"User {user_id} generated a trial for {service_name}")
        return await self._finish(
            user_id, raw_command, service_name, STATUS_SUCCESS, result.message, trial_data=result.data
        )
