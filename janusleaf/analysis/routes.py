import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Security
from sqlalchemy.orm import Session

from janusleaf.analysis.db import count_pending
from janusleaf.analysis.schemas import PendingAnalysisCount
from janusleaf.auth.service import get_current_user_id
from janusleaf.core.database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["Analysis"])


@router.get(
    "/pending",
    response_model=PendingAnalysisCount,
    summary="Count pending mood analyses",
    description="Number of the user's journal entries still waiting for an AI mood score.",
    responses={
        200: {"description": "Pending count returned."},
        401: {"description": "Unauthorized - invalid or missing credentials."},
        500: {"description": "Internal server error."},
    },
)
def pending_analysis_route(
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
) -> PendingAnalysisCount:
    try:
        return PendingAnalysisCount(pending=count_pending(db, user_id))
    except Exception as e:
        logger.error(f"Failed to count pending analyses for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to count pending analyses")
