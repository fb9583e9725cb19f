import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), unique=True, index=True, nullable=False)  # Auth subject
    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    user_type = Column(String(20), default="customer", nullable=False)  # customer, designer
    is_admin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    designer = relationship("Designer", back_populates="profile", uselist=False)

    @property
    def name(self) -> str:
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.display_name or self.email or "User"


class Designer(Base):
    __tablename__ = "designers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), ForeignKey("profiles.user_id"), unique=True, nullable=False)
    specialty = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    skills = Column(JSON, default=list)
    experience_years = Column(Integer, nullable=True)
    hourly_rate = Column(Float, nullable=False, default=0)
    is_online = Column(Boolean, default=False)
    available_for_urgent = Column(Boolean, default=False)
    verification_status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    average_rating = Column(Float, default=0)
    reviews_count = Column(Integer, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    profile = relationship("Profile", back_populates="designer")


class DesignerSlot(Base):
    """Recurring weekly time slot. day_of_week: 0 = Sunday ... 6 = Saturday."""

    __tablename__ = "designer_slots"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    # Holds either designers.id or the designer's user_id (both occur in practice)
    designer_id = Column(String(64), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(8), nullable=False)  # HH:MM
    end_time = Column(String(8), nullable=False)  # HH:MM
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class DesignerSpecialDay(Base):
    """Per-date override of the weekly slots"""

    __tablename__ = "designer_special_days"
    __table_args__ = (UniqueConstraint("designer_id", "date", name="uq_special_day_designer_date"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    designer_id = Column(String(64), index=True, nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    is_available = Column(Boolean, default=False, nullable=False)
    start_time = Column(String(8), nullable=True)
    end_time = Column(String(8), nullable=True)
    reason = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(64), index=True, nullable=False)  # profiles.user_id
    designer_id = Column(String(36), ForeignKey("designers.id"), index=True, nullable=False)
    service = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    requirements = Column(Text, nullable=True)
    scheduled_date = Column(DateTime, nullable=False)  # naive UTC
    duration_hours = Column(Float, default=1, nullable=False)
    total_amount = Column(Float, nullable=False)
    # pending, confirmed, in_progress, completed, cancelled, declined
    status = Column(String(20), default="pending", nullable=False, index=True)
    channel_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    designer = relationship("Designer")


class ActiveSession(Base):
    __tablename__ = "active_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(100), unique=True, index=True, nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    customer_id = Column(String(64), index=True, nullable=False)
    designer_id = Column(String(36), ForeignKey("designers.id"), nullable=False)
    session_type = Column(String(20), default="live", nullable=False)  # live, scheduled
    status = Column(String(20), default="waiting", nullable=False)  # waiting, active, ended
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    payment_processed = Column(Boolean, default=False, nullable=False)
    payment_processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    designer = relationship("Designer")
    booking = relationship("Booking")


class SessionReview(Base):
    __tablename__ = "session_reviews"
    __table_args__ = (UniqueConstraint("session_id", "customer_id", name="uq_review_session_customer"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(100), index=True, nullable=False)
    customer_id = Column(String(64), nullable=False)
    designer_id = Column(String(36), ForeignKey("designers.id"), nullable=False)
    designer_name = Column(String(255), nullable=False)
    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=True)
    review_date = Column(DateTime, server_default=func.now())

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CustomerComplaint(Base):
    __tablename__ = "customer_complaints"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(100), nullable=False)
    booking_id = Column(String(36), nullable=True)
    customer_id = Column(String(64), index=True, nullable=False)
    designer_id = Column(String(36), nullable=False)
    complaint_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    priority = Column(String(20), default="medium", nullable=False)  # low, medium, high
    status = Column(String(20), default="open", nullable=False)  # open, in_review, resolved
    admin_notes = Column(Text, nullable=True)
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class WalletTransaction(Base):
    """Ledger row. Amounts are always positive; the type gives the direction."""

    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    amount = Column(Float, nullable=False)
    transaction_type = Column(String(20), nullable=False)  # deposit, payment, refund, withdrawal
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, failed
    description = Column(Text, nullable=False, default="")
    booking_id = Column(String(36), nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BankAccount(Base):
    __tablename__ = "bank_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    bank_name = Column(String(255), nullable=False)
    account_holder_name = Column(String(255), nullable=False)
    account_number = Column(String(30), nullable=False)
    ifsc_code = Column(String(11), nullable=False)
    account_type = Column(String(20), default="savings")
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    verification_method = Column(String(20), nullable=True)  # otp, auto
    meta = Column("metadata", JSON, default=dict)  # razorpay_fund_account_id

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    verifications = relationship(
        "BankAccountVerification", back_populates="bank_account", cascade="all, delete-orphan"
    )


class BankAccountVerification(Base):
    __tablename__ = "bank_account_verifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    bank_account_id = Column(String(36), ForeignKey("bank_accounts.id"), index=True, nullable=False)
    otp_hash = Column(String(64), nullable=False)
    method = Column(String(20), nullable=False)  # sms, email
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, completed, superseded
    verified_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    bank_account = relationship("BankAccount", back_populates="verifications")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(String(36), nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    setting_key = Column(String(100), unique=True, nullable=False)
    setting_value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
