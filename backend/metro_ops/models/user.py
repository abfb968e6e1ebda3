from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from metro_ops.core.database import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="EMPLOYEE")  # ADMIN, CAPTAIN, EMPLOYEE
    department = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
