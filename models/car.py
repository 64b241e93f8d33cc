from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, Boolean, Float, Text, DateTime
from database import Base


class Car(Base):
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, index=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    price_per_day = Column(Numeric(10, 2), nullable=False)
    available = Column(Boolean, nullable=False, default=True, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    # WGS84, both set or both null
    latitude = Column(Float, nullable=True, index=True)
    longitude = Column(Float, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<Car {self.id} {self.brand} {self.model} ({self.year})>"
