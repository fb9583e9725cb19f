"""Designer service - Directory and designer self-service"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...models import Designer, Profile
from .schemas import DesignerProfileCreate, DesignerProfileUpdate

logger = logging.getLogger(__name__)


class DesignerService:
    def __init__(self, db: Session):
        self.db = db

    def list_designers(
        self, specialty: Optional[str] = None, online_only: bool = False, limit: int = 50
    ) -> list[Designer]:
        query = (
            self.db.query(Designer)
            .options(joinedload(Designer.profile))
            .filter(Designer.verification_status == "approved")
        )
        if specialty:
            query = query.filter(Designer.specialty.ilike(f"%{specialty}%"))
        if online_only:
            query = query.filter(Designer.is_online.is_(True))
        return (
            query.order_by(Designer.is_online.desc(), Designer.average_rating.desc())
            .limit(limit)
            .all()
        )

    def get_designer(self, designer_id: str) -> Designer:
        designer = (
            self.db.query(Designer)
            .options(joinedload(Designer.profile))
            .filter(Designer.id == designer_id)
            .first()
        )
        if not designer:
            raise HTTPException(status_code=404, detail="Designer not found")
        return designer

    def create_profile(self, user: Profile, data: DesignerProfileCreate) -> Designer:
        existing = self.db.query(Designer).filter(Designer.user_id == user.user_id).first()
        if existing:
            raise HTTPException(status_code=400, detail="Designer profile already exists")

        designer = Designer(
            user_id=user.user_id,
            specialty=data.specialty,
            bio=data.bio,
            location=data.location,
            skills=data.skills,
            experience_years=data.experienceYears,
            hourly_rate=data.hourlyRate,
            available_for_urgent=data.availableForUrgent,
            verification_status="pending",
        )
        user.user_type = "designer"
        self.db.add(designer)
        self.db.commit()
        self.db.refresh(designer)
        logger.info(f"🎨 Designer profile {designer.id} created for {user.user_id}")
        return designer

    def update_profile(self, designer: Designer, data: DesignerProfileUpdate) -> Designer:
        updates = {
            "specialty": data.specialty,
            "bio": data.bio,
            "location": data.location,
            "skills": data.skills,
            "experience_years": data.experienceYears,
            "hourly_rate": data.hourlyRate,
            "available_for_urgent": data.availableForUrgent,
        }
        for key, value in updates.items():
            if value is not None:
                setattr(designer, key, value)
        self.db.commit()
        self.db.refresh(designer)
        return designer

    def set_online(self, designer: Designer, is_online: bool) -> Designer:
        designer.is_online = is_online
        self.db.commit()
        self.db.refresh(designer)
        logger.info(f"{'🟢' if is_online else '⚪'} Designer {designer.id} is now {'online' if is_online else 'offline'}")
        return designer
