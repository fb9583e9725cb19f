"""Designer router - Public directory and designer self-service"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_designer, get_current_user
from ...database import get_db
from ...models import Designer, Profile
from ..sessions.repository import SessionRepository
from ..sessions.schemas import ReviewResponse
from .schemas import DesignerProfileCreate, DesignerProfileUpdate, DesignerResponse, OnlineStatusUpdate
from .service import DesignerService

router = APIRouter(prefix="/designers", tags=["Designers"])


def get_designer_service(db: Session = Depends(get_db)) -> DesignerService:
    """Dependency injection for DesignerService"""
    return DesignerService(db)


# ============================================================================
# SELF-SERVICE
# ============================================================================


@router.get("/me", response_model=DesignerResponse)
async def get_my_profile(current_designer: Designer = Depends(get_current_designer)):
    return DesignerResponse.from_model(current_designer)


@router.post("/me", response_model=DesignerResponse, status_code=201)
async def create_my_profile(
    data: DesignerProfileCreate,
    current_user: Profile = Depends(get_current_user),
    service: DesignerService = Depends(get_designer_service),
):
    """Register the caller as a designer; new profiles start pending review"""
    return DesignerResponse.from_model(service.create_profile(current_user, data))


@router.patch("/me", response_model=DesignerResponse)
async def update_my_profile(
    data: DesignerProfileUpdate,
    current_designer: Designer = Depends(get_current_designer),
    service: DesignerService = Depends(get_designer_service),
):
    return DesignerResponse.from_model(service.update_profile(current_designer, data))


@router.put("/me/online", response_model=DesignerResponse)
async def set_online_status(
    data: OnlineStatusUpdate,
    current_designer: Designer = Depends(get_current_designer),
    service: DesignerService = Depends(get_designer_service),
):
    return DesignerResponse.from_model(service.set_online(current_designer, data.isOnline))


# ============================================================================
# PUBLIC DIRECTORY
# ============================================================================


@router.get("", response_model=list[DesignerResponse])
async def list_designers(
    specialty: Optional[str] = Query(None),
    online: bool = Query(False, description="Only designers currently online"),
    limit: int = Query(50, ge=1, le=100),
    service: DesignerService = Depends(get_designer_service),
):
    return [DesignerResponse.from_model(d) for d in service.list_designers(specialty, online, limit)]


@router.get("/{designer_id}", response_model=DesignerResponse)
async def get_designer(designer_id: str, service: DesignerService = Depends(get_designer_service)):
    return DesignerResponse.from_model(service.get_designer(designer_id))


@router.get("/{designer_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    designer_id: str,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return [ReviewResponse.from_model(r) for r in SessionRepository.list_reviews_for_designer(db, designer_id, limit)]
