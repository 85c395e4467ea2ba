import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Security, status

from janusleaf.auth.service import get_current_user_id
from janusleaf.core.dependency import get_quote_regenerator
from janusleaf.inspiration.schemas import NoQuoteResponse, QuoteResponse
from janusleaf.inspiration.service import QuoteRegenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inspiration", tags=["Inspiration"])


@router.get(
    "",
    response_model=QuoteResponse,
    summary="Get the user's inspirational quote",
    description="""
                Returns the current quote immediately. If it is missing or stale a
                regeneration is started in the background; the response never waits for it.
                """,
    responses={
        200: {"description": "Quote returned."},
        401: {"description": "Unauthorized."},
        404: {"model": NoQuoteResponse, "description": "No quote generated yet."},
    },
)
def get_quote_route(
    user_id: UUID = Security(get_current_user_id),
    regenerator: QuoteRegenerator = Depends(get_quote_regenerator),
) -> QuoteResponse:
    try:
        quote = regenerator.get_or_schedule_quote(user_id)
    except Exception as e:
        logger.error(f"Failed to load inspirational quote for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load inspirational quote")

    if quote is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NoQuoteResponse().detail)
    return QuoteResponse.model_validate(quote)
