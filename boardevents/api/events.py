from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from boardevents.db import get_db
from boardevents.models.account import Account, User
from boardevents.models.board import Board
from boardevents.schemas.common import ListResponse
from boardevents.schemas.event import EventDescription, EventRead
from boardevents.services import audience
from boardevents.services.common import coerce_uuid, get_or_404
from boardevents.services.events import describe
from boardevents.services.events import events as events_service

router = APIRouter(tags=["events"])


@router.get("/boards/{board_id}/events", response_model=ListResponse[EventRead])
def list_board_events(
    board_id: str,
    action: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    get_or_404(db, Board, board_id)
    return events_service.list_response(
        db, board_id=board_id, action=action, limit=limit, offset=offset
    )


@router.get("/accounts/{account_id}/events", response_model=ListResponse[EventRead])
def list_account_events(
    account_id: str,
    action: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    get_or_404(db, Account, account_id)
    return events_service.list_response(
        db, account_id=account_id, action=action, limit=limit, offset=offset
    )


@router.get("/events/{event_id}", response_model=EventRead)
def get_event(event_id: str, db: Session = Depends(get_db)):
    return events_service.get(db, event_id)


@router.get("/events/{event_id}/description", response_model=EventDescription)
def describe_event(
    event_id: str,
    viewer_id: str | None = None,
    db: Session = Depends(get_db),
):
    event = events_service.get(db, event_id)
    viewer = get_or_404(db, User, viewer_id) if viewer_id else None
    assignees = audience.users_by_ids(
        db, [coerce_uuid(value) for value in event.assignee_ids]
    )
    users_by_id = {str(user.id): user for user in assignees}
    return {
        "event_id": event.id,
        "viewer_id": viewer.id if viewer else None,
        "description": describe(event, viewer, users_by_id),
    }
