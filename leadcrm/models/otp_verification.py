from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index

from .base import Base, TimestampMixin


class OTPVerification(Base, TimestampMixin):
    __tablename__ = "otp_verifications"

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(10), nullable=False)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, default=False)

    __table_args__ = (
        Index('idx_otp_phone_created', 'phone', 'created_at'),
    )
