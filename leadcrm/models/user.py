from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric
import enum

from .base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"          # legacy alias, treated as a manager
    MANAGER = "manager"
    STAFF = "staff"
    SALES_REP = "sales_rep"


class StaffType(str, enum.Enum):
    """Team-pool bucket a member falls into."""
    SALES = "sales"
    SUPPORT = "support"
    MANAGER = "manager"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)  # null for super admins
    phone = Column(String(10), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.SALES_REP.value)
    staff_type = Column(String(20), nullable=False, default=StaffType.SALES.value)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    monthly_salary = Column(Numeric(12, 2), nullable=True)  # incentive cap when set
    pin_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, role={self.role})>"
