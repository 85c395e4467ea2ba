from datetime import date
from uuid import UUID
from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, Security, status
from sqlalchemy.orm import Session

from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.auth.service import get_current_user_id
from janusleaf.core.database import get_db
from janusleaf.core.dependency import get_mood_queue, get_quote_regenerator
from janusleaf.core.errors import AppError
from janusleaf.inspiration.service import QuoteRegenerator
from janusleaf.journals.schemas import (
    JournalBodyUpdate,
    JournalBodyUpdateResponse,
    JournalEntryBase,
    JournalEntryCreate,
    JournalEntrySummary,
    JournalMetadataUpdate,
)
from janusleaf.journals.service import (
    create_entry,
    delete_entry,
    get_entry,
    list_entries,
    list_entries_in_range,
    update_body,
    update_metadata,
)

router = APIRouter(prefix="/journals", tags=["Journals"])
logger = logging.getLogger(__name__)


@router.get(
    "/all",
    response_model=List[JournalEntrySummary],
    summary="Get all journal entries",
    description="Retrieve a paginated list of the authenticated user's entries, newest first.",
    responses={
        200: {"description": "Journal entries retrieved successfully."},
        401: {"description": "Unauthorized."},
        500: {"description": "Failed to retrieve journal entries."},
    },
)
def get_journals_route(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
) -> List[JournalEntrySummary]:
    try:
        return list_entries(db, user_id, skip, limit)
    except Exception as e:
        logger.error(f"Error fetching journals for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch journal entries")


@router.get(
    "/range",
    response_model=List[JournalEntrySummary],
    summary="Get journal entries in a date range",
    description="Entries whose entry_date lies between start_date and end_date (inclusive), newest first.",
    responses={
        200: {"description": "Journal entries retrieved successfully."},
        400: {"description": "start_date is after end_date."},
        401: {"description": "Unauthorized."},
    },
)
def get_journals_in_range_route(
    start_date: date,
    end_date: date,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
) -> List[JournalEntrySummary]:
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    try:
        return list_entries_in_range(db, user_id, start_date, end_date)
    except Exception as e:
        logger.error(f"Error fetching journals in range for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch journal entries")


@router.get(
    "/{journal_id}",
    response_model=JournalEntryBase,
    summary="Get a journal by ID",
    responses={
        200: {"description": "Journal retrieved successfully."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal not found."},
    },
)
def get_journal_route(
    journal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
) -> JournalEntryBase:
    return get_entry(db, user_id, journal_id)


@router.post(
    "",
    response_model=JournalEntryBase,
    status_code=status.HTTP_201_CREATED,
    summary="Create a journal entry",
    description="Title defaults to the entry date. Mood analysis is queued for non-empty bodies.",
    responses={
        201: {"description": "Journal created successfully."},
        401: {"description": "Unauthorized."},
        500: {"description": "Failed to create journal entry."},
    },
)
def create_journal_route(
    journal: JournalEntryCreate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    queue: MoodAnalysisQueue = Depends(get_mood_queue),
    regenerator: QuoteRegenerator = Depends(get_quote_regenerator),
) -> JournalEntryBase:
    try:
        return create_entry(db, user_id, journal, queue, regenerator)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating journal for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create journal entry")


@router.put(
    "/{journal_id}/body",
    response_model=JournalBodyUpdateResponse,
    summary="Update a journal body",
    description="Optimistic concurrency: pass the version you last read as expected_version.",
    responses={
        200: {"description": "Body updated; mood analysis re-queued."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal not found."},
        409: {"description": "Version conflict."},
    },
)
def update_body_route(
    journal_id: UUID,
    update: JournalBodyUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    queue: MoodAnalysisQueue = Depends(get_mood_queue),
) -> JournalBodyUpdateResponse:
    try:
        entry = update_body(db, user_id, journal_id, update.body, update.expected_version, queue)
        return JournalBodyUpdateResponse.model_validate(entry)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating body of journal {journal_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update journal entry")


@router.put(
    "/{journal_id}/metadata",
    response_model=JournalEntryBase,
    summary="Update a journal's title",
    responses={
        200: {"description": "Metadata updated."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal not found."},
        409: {"description": "Version conflict."},
    },
)
def update_metadata_route(
    journal_id: UUID,
    update: JournalMetadataUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
) -> JournalEntryBase:
    try:
        return update_metadata(db, user_id, journal_id, update.title, update.expected_version)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating metadata of journal {journal_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update journal entry")


@router.delete(
    "/{journal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a journal entry",
    responses={
        204: {"description": "Journal deleted."},
        401: {"description": "Unauthorized."},
        404: {"description": "Journal not found."},
    },
)
def delete_journal_route(
    journal_id: UUID,
    db: Session = Depends(get_db),
    user_id: UUID = Security(get_current_user_id),
    queue: MoodAnalysisQueue = Depends(get_mood_queue),
) -> None:
    try:
        delete_entry(db, user_id, journal_id, queue)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting journal {journal_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete journal entry")
