from sqlalchemy import Column, Integer, String, Boolean, JSON

from .base import Base, TimestampMixin


class Organization(Base, TimestampMixin):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    logo_url = Column(String(500), nullable=True)
    contact_number = Column(String(20), nullable=True)

    # walk-in offer wheel; prizes fall back to the built-in set when empty
    offer_whatsapp_number = Column(String(20), nullable=True)
    offer_prizes = Column(JSON, nullable=True)
    offer_enabled = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Organization(id={self.id}, name={self.name})>"
