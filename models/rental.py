from datetime import datetime

from sqlalchemy import Column, Integer, ForeignKey, Date, Enum, Numeric, DateTime, Index
from database import Base
from sqlalchemy.orm import relationship
import enum


class RentalStatus(enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# a car is booked while it has a rental in one of these
OPEN_STATUSES = (RentalStatus.PENDING, RentalStatus.ACTIVE)


class Rental(Base):
    __tablename__ = "rentals"
    __table_args__ = (
        Index("idx_rentals_dates", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    car_id = Column(Integer, ForeignKey("cars.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    total_cost = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(RentalStatus, values_callable=lambda e: [s.value for s in e], name="rental_status"),
        nullable=False,
        default=RentalStatus.PENDING,
        index=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    car = relationship("Car")
    user = relationship("User")
