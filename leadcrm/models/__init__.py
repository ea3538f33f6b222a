# Import order follows foreign key dependencies
from .base import Base
from .organization import Organization
from .user import User, UserRole, StaffType
from .category import Category
from .lead import Lead, LeadStatus, PurchaseTimeline, NotTodayReason, ReviewStatus
from .offer_lead import OfferLead
from .otp_verification import OTPVerification
from .streak import Streak
from .commission_rate import CommissionRate
from .incentive_config import IncentiveConfig
from .monthly_target import MonthlyTarget
from .penalty import Penalty, PenaltyType, PenaltyStatus
from .monthly_incentive import MonthlyIncentive, IncentiveStatus
from .team_pool import TeamPoolDistribution, TeamPoolStatus
