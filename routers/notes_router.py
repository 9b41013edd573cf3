from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response
from crud.note import NoteRepository
from database import get_db

notes_router = APIRouter(prefix="/api", tags=["notes"])


@notes_router.get("/notes")
async def list_notes(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Notes for the caller, pinned first. Generated trials land here."""
    notes = await NoteRepository(db).list_notes(current_user["user_id"])
    return success_response(data=[note.to_dict() for note in notes])
