"""
Statistics routes for the StatBot control panel.

Provides:
- /api/stats/global - Global summary
- /api/stats/conversations/{conversation_id} - One conversation
- /api/stats/top - Most active participants
"""

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse

from statbot.server.dependencies import StoreDep

router = APIRouter()


@router.get("/global")
async def get_global(store: StoreDep):
    """Totals across every conversation."""
    return JSONResponse(store.get_global_summary().to_dict())


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str, store: StoreDep):
    """Summary of one conversation."""
    summary = store.get_conversation_summary(conversation_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No statistics for conversation: {conversation_id}",
        )
    return JSONResponse(summary.to_dict())


@router.get("/top")
async def get_top(
    store: StoreDep,
    conversation_id: str | None = None,
    limit: int = Query(default=5, ge=1, le=100),
):
    """Most active participants, in one conversation or overall."""
    ranked = store.get_top_participants(conversation_id, limit)
    return JSONResponse({
        "conversation_id": conversation_id,
        "participants": [row.to_dict() for row in ranked],
    })
