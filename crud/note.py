"""
NoteRepository - the notebook's note store
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Note
from utils.shared_utils import utcnow


class NoteRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_note(
        self,
        user_id: int,
        title: Optional[str],
        content: str,
        color: Optional[str] = None,
        is_pinned: bool = False,
    ) -> Note:
        now = utcnow()
        note = Note(
            user_id=user_id,
            title=title,
            content=content,
            color=color,
            is_pinned=is_pinned,
            is_archived=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(note)
        await self.db.flush()
        await self.db.refresh(note)
        return note

    async def list_notes(self, user_id: int) -> List[Note]:
        """Pinned notes first, then most recently updated."""
        result = await self.db.execute(
            select(Note)
            .where(Note.user_id == user_id, Note.is_archived.is_(False))
            .order_by(Note.is_pinned.desc(), Note.updated_at.desc(), Note.id.desc())
        )
        return list(result.scalars().all())
