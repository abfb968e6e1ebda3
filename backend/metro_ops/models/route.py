from sqlalchemy import Column, Integer, String, Float
from metro_ops.core.database import Base

class Route(Base):
    """A standard duty run; assigning one fills a schedule's hours and kilometers."""
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)
    standard_hours = Column(Float, nullable=False, default=0)
    standard_km = Column(Float, nullable=False, default=0)
