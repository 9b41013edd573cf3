"""
Command history ledger. Append-only: rows are inserted and read, never changed.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import CommandExecution
from utils.shared_utils import utcnow

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class CommandExecutionRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        user_id: int,
        command: str,
        service_name: str,
        status: str,
        message: str,
        trial_data: Optional[Dict[str, Any]] = None,
    ) -> CommandExecution:
        """Append one ledger entry."""
        if status not in (STATUS_SUCCESS, STATUS_ERROR):
            raise ValueError(f"Unknown command status: {status}")

        execution = CommandExecution(
            user_id=user_id,
            command=command,
            service_name=service_name,
            status=status,
            message=message,
            executed_at=utcnow(),
            trial_data=trial_data,
        )
        self.db.add(execution)
        await self.db.flush()
        await self.db.refresh(execution)
        return execution

    async def history(self, user_id: int, limit: Optional[int] = None) -> List[CommandExecution]:
        """A user's executions, newest first."""
        stmt = (
            select(CommandExecution)
            .where(CommandExecution.user_id == user_id)
            .order_by(CommandExecution.executed_at.desc(), CommandExecution.id.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(CommandExecution.id)).where(CommandExecution.user_id == user_id)
        )
        return result.scalar_one()
