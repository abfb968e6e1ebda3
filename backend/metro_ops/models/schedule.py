from sqlalchemy import Column, Integer, String, Date, Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from metro_ops.core.database import Base
from metro_ops.models.route import Route
from metro_ops.models.user import User

class Schedule(Base):
    __tablename__ = "schedules"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_schedule_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    shift_type = Column(String, nullable=False, default="OFF")  # MORNING, DAY, NIGHT, OFF
    status = Column(String, nullable=False, default="DUTY")  # DUTY, OFF, LEAVE
    leave_type = Column(String, nullable=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=True)
    custom_route_name = Column(String, nullable=True)
    work_hours = Column(Float, nullable=False, default=0)
    kilometers = Column(Float, nullable=False, default=0)
    note = Column(Text, nullable=True)

    user = relationship(User)
    route = relationship(Route)
