"""Session router - Live sessions, reviews and complaints"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .schemas import (
    ComplaintCreate,
    ComplaintResponse,
    ReviewCreate,
    ReviewResponse,
    SessionEnd,
    SessionResponse,
    SessionStart,
)
from .service import SessionService

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    """Dependency injection for SessionService"""
    return SessionService(db)


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return [SessionResponse.from_model(s) for s in service.list_sessions(current_user)]


@router.get("/complaints", response_model=list[ComplaintResponse])
async def list_complaints(
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return [ComplaintResponse.from_model(c) for c in service.list_complaints(current_user)]


@router.post("", response_model=SessionResponse, status_code=201)
async def start_session(
    data: SessionStart,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Open a session from a confirmed booking or with an online designer"""
    return SessionResponse.from_model(service.start_session(current_user, data.bookingId, data.designerId))


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return SessionResponse.from_model(service.get_session(current_user, session_id))


@router.post("/{session_id}/accept", response_model=SessionResponse)
async def accept_session(
    session_id: str,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return SessionResponse.from_model(service.accept_session(current_user, session_id))


@router.post("/{session_id}/end")
async def end_session(
    session_id: str,
    data: Optional[SessionEnd] = None,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """End the session and charge it if it was started"""
    result = service.end_session(current_user, session_id, data.durationMinutes if data else None)
    return {"session": SessionResponse.from_model(result["session"]), "payment": result["payment"]}


@router.post("/{session_id}/review", response_model=ReviewResponse, status_code=201)
async def submit_review(
    session_id: str,
    data: ReviewCreate,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return ReviewResponse.from_model(service.submit_review(current_user, session_id, data))


@router.post("/{session_id}/complaints", response_model=ComplaintResponse, status_code=201)
async def file_complaint(
    session_id: str,
    data: ComplaintCreate,
    current_user: Profile = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return ComplaintResponse.from_model(service.file_complaint(current_user, session_id, data))
