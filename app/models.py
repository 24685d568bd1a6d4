from sqlalchemy import Column, Integer, String, DateTime
from .database import Base
import datetime


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def next_timestamp(previous=None):
    """Current time, moved past previous so updated_at always increases."""
    now = utc_now()
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=datetime.timezone.utc)
    if now <= previous:
        now = previous + datetime.timedelta(microseconds=1)
    return now


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(254), unique=True, nullable=False)
    phone = Column(String(13), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
