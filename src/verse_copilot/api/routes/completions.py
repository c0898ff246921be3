"""Completion API routes: trigger, cancel on edit, and inspect state."""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from verse_copilot.services.completion_service import CompletionService

router = APIRouter(prefix="/api/v1", tags=["completions"])

# Shared instance (set by server.py)
_completion_service: Optional[CompletionService] = None


def set_completion_service(service: CompletionService) -> None:
    """Set the CompletionService instance."""
    global _completion_service
    _completion_service = service


def _service() -> CompletionService:
    if _completion_service is None:
        raise HTTPException(status_code=503, detail="Completion service not initialised")
    return _completion_service


class CompletionRequest(BaseModel):
    """Document snapshot and cursor for one completion."""

    text: str
    line: int = Field(ge=0)
    character: int = Field(ge=0)
    path: Optional[str] = None


class DocumentChanged(BaseModel):
    is_own_insertion: bool = False


@router.post("/completions")
async def create_completion(request: CompletionRequest) -> dict[str, Any]:
    """Complete the verse at the cursor.

    Returns 200 with ``text`` null when the request was rejected, cancelled
    or failed; ``state`` and ``notices`` say which.
    """
    return await _service().complete(
        request.text, request.line, request.character, path=request.path
    )


@router.post("/documents/changed")
async def document_changed(request: DocumentChanged) -> dict[str, Any]:
    """Report a document edit; cancels the active completion."""
    return _service().document_changed(is_own_insertion=request.is_own_insertion)


@router.get("/state")
async def get_state() -> dict[str, Any]:
    """Current and last completion state, plus similarity cache counters."""
    return _service().get_state()
