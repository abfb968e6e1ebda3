from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from metro_ops.core.database import Base
from metro_ops.models.user import User

class Incident(Base):
    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    voice_text = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    # DRAFT, PENDING_CAPTAIN, PENDING_ADMIN, APPROVED, REJECTED
    status = Column(String, nullable=False, default="DRAFT", index=True)
    captain_comment = Column(Text, nullable=True)
    admin_comment = Column(Text, nullable=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    reporter = relationship(User, foreign_keys=[user_id])
    approver = relationship(User, foreign_keys=[approver_id])
    attachments = relationship(
        "Attachment",
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Attachment.id",
    )

class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    incident_id = Column(Integer, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False)  # PHOTO, AUDIO, VIDEO, HANDWRITING
    url = Column(String, nullable=False)

    incident = relationship(Incident, back_populates="attachments")
