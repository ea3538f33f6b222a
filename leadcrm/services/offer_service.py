"""
Walk-in offers.

A customer opens a sales rep's offer link, leaves their details and spins a
prize wheel. Winning prizes carry a coupon code that the store checks
and redeems at the counter; the rep later turns the walk-in into a regular
lead.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from datetime import timedelta
from typing import Any, Dict, List, Tuple
import logging
import random
import secrets

from leadcrm.core.config import settings
from leadcrm.core.exceptions import AppError, NotFoundError, PermissionDeniedError, ValidationError
from leadcrm.models.offer_lead import OfferLead
from leadcrm.models.organization import Organization
from leadcrm.models.lead import Lead
from leadcrm.schemas.offer import OfferConvertRequest, OfferLeadCreate, OfferSettingsUpdate, SpinPrize
from leadcrm.services.lead_service import LeadService
from leadcrm.services.organization_service import OrganizationService
from leadcrm.services.user_service import UserService
from leadcrm.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

COUPON_PREFIX = "OFF"
COUPON_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O or 1/I
COUPON_RANDOM_LENGTH = 6
COUPON_MIN_LENGTH = 6
COUPON_ATTEMPTS = 5
TRY_AGAIN = "try again"

DEFAULT_SPIN_PRIZES = [
    {"label": "5% Off", "probability": 0.30, "color": "#FF6B6B", "text_color": "#FFFFFF"},
    {"label": "10% Off", "probability": 0.20, "color": "#4ECDC4", "text_color": "#FFFFFF"},
    {"label": "Free Accessory", "probability": 0.15, "color": "#45B7D1", "text_color": "#FFFFFF"},
    {"label": "Free Service", "probability": 0.15, "color": "#96CEB4", "text_color": "#FFFFFF"},
    {"label": "15% Off", "probability": 0.05, "color": "#FFEAA7", "text_color": "#333333"},
    {"label": "Try Again", "probability": 0.15, "color": "#DFE6E9", "text_color": "#333333"},
]

_system_random = secrets.SystemRandom()


def generate_coupon_code(rng: random.Random = None) -> str:
    rng = rng or _system_random
    return COUPON_PREFIX + "".join(rng.choice(COUPON_ALPHABET) for _ in range(COUPON_RANDOM_LENGTH))


def is_try_again(label: str) -> bool:
    return TRY_AGAIN in label.lower()


def select_prize(prizes: List[SpinPrize], rng: random.Random = None) -> Tuple[str, int]:
    """Weighted draw over the enabled prizes.

    Returns the label and its index on the full wheel so the client can land
    on the right slice. Probabilities are renormalised over enabled prizes.
    """
    rng = rng or _system_random
    enabled = [(index, prize) for index, prize in enumerate(prizes) if not prize.disabled]
    if not enabled:
        return prizes[0].label, 0

    total = sum(prize.probability for _, prize in enabled)
    if total <= 0:
        index, prize = enabled[0]
        return prize.label, index

    draw = rng.random() * total
    cumulative = 0.0
    for index, prize in enabled:
        cumulative += prize.probability
        if draw < cumulative:
            return prize.label, index

    index, prize = enabled[-1]
    return prize.label, index


def effective_prizes(organization: Organization) -> List[SpinPrize]:
    stored = organization.offer_prizes if isinstance(organization.offer_prizes, list) else []
    return [SpinPrize.model_validate(p) for p in (stored or DEFAULT_SPIN_PRIZES)]


def settings_payload(organization: Organization) -> Dict[str, Any]:
    return {
        "whatsapp_number": organization.offer_whatsapp_number or "",
        "prizes": effective_prizes(organization),
        "using_default_prizes": not organization.offer_prizes,
        "enabled": organization.offer_enabled if organization.offer_enabled is not None else True,
    }


class OfferService:
    def __init__(self, db: AsyncSession, rng: random.Random = None):
        self.db = db
        self.rng = rng

    async def _organization_for_rep(self, sales_rep_id: int) -> Organization:
        rep = await UserService(self.db).get_user_by_id(sales_rep_id)
        if rep is None or rep.organization_id is None or not rep.is_active:
            raise NotFoundError("Invalid sales rep")
        return await OrganizationService(self.db).get_organization(rep.organization_id)

    async def get_offer_lead(self, offer_lead_id: int) -> OfferLead:
        result = await self.db.execute(select(OfferLead).where(OfferLead.id == offer_lead_id))
        offer = result.scalar_one_or_none()
        if offer is None:
            raise NotFoundError("Invalid offer. Please start over.")
        return offer

    async def get_org_offer_lead(self, organization_id: int, offer_lead_id: int) -> OfferLead:
        offer = await self.get_offer_lead(offer_lead_id)
        if offer.organization_id != organization_id:
            raise NotFoundError("Offer lead not found")
        return offer

    # ---- customer facing ----

    async def public_settings(self, sales_rep_id: int) -> Dict[str, Any]:
        organization = await self._organization_for_rep(sales_rep_id)
        return settings_payload(organization)

    async def capture_lead(self, data: OfferLeadCreate) -> Dict[str, Any]:
        """One offer per phone number and organisation."""
        organization = await self._organization_for_rep(data.sales_rep_id)
        if not organization.offer_enabled:
            raise ValidationError("Offers are currently unavailable")

        result = await self.db.execute(
            select(OfferLead).where(and_(
                OfferLead.organization_id == organization.id,
                OfferLead.phone == data.phone,
            ))
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            if existing.prize_won and existing.coupon_code:
                return {
                    "id": existing.id,
                    "already_played": True,
                    "prize": existing.prize_won,
                    "coupon_code": existing.coupon_code,
                }
            return {"id": existing.id, "already_submitted": True}

        now = utcnow()
        offer = OfferLead(
            organization_id=organization.id,
            sales_rep_id=data.sales_rep_id,
            customer_name=data.name,
            phone=data.phone,
            locality=data.locality,
            address=data.address,
            redeemed=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(offer)
        await self.db.commit()
        await self.db.refresh(offer)

        logger.info(f"Offer lead {offer.id} captured for sales rep {data.sales_rep_id}")
        return {"id": offer.id}

    async def spin(self, offer_lead_id: int) -> Dict[str, Any]:
        """Draw a prize. A coupon, once issued, is final; "try again" may spin again."""
        offer = await self.get_offer_lead(offer_lead_id)
        organization = await OrganizationService(self.db).get_organization(offer.organization_id)

        result = {
            "customer_name": offer.customer_name,
            "customer_phone": offer.phone,
            "locality": offer.locality,
            "whatsapp_number": organization.offer_whatsapp_number or "",
        }

        if offer.prize_won and offer.coupon_code:
            result.update({
                "prize": offer.prize_won,
                "coupon_code": offer.coupon_code,
                "expires_at": offer.coupon_expires_at,
                "already_spun": True,
            })
            return result

        if not organization.offer_enabled:
            raise ValidationError("Offers are currently unavailable")

        prizes = effective_prizes(organization)
        prize, index = select_prize(prizes, self.rng)
        try_again = is_try_again(prize)

        offer.prize_won = prize
        if try_again:
            offer.coupon_code = None
            offer.coupon_expires_at = None
        else:
            offer.coupon_code = await self._unique_coupon_code()
            offer.coupon_expires_at = utcnow() + timedelta(days=settings.OFFER_COUPON_VALID_DAYS)
        offer.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(offer)

        logger.info(f"Prize '{prize}' awarded to offer lead {offer.id}")
        result.update({
            "prize": prize,
            "prize_index": index,
            "is_try_again": try_again,
            "coupon_code": offer.coupon_code or "",
            "expires_at": offer.coupon_expires_at,
            "already_spun": False,
        })
        return result

    async def _unique_coupon_code(self) -> str:
        for _ in range(COUPON_ATTEMPTS):
            code = generate_coupon_code(self.rng)
            taken = await self.db.execute(select(OfferLead.id).where(OfferLead.coupon_code == code))
            if taken.scalar_one_or_none() is None:
                return code
        raise AppError("Could not generate a coupon code", status_code=500)

    # ---- store facing ----

    async def pending_for_rep(self, organization_id: int, sales_rep_id: int) -> List[OfferLead]:
        result = await self.db.execute(
            select(OfferLead).where(and_(
                OfferLead.organization_id == organization_id,
                OfferLead.sales_rep_id == sales_rep_id,
                OfferLead.converted_to_lead_id.is_(None),
            )).order_by(OfferLead.created_at.desc(), OfferLead.id.desc())
        )
        return result.scalars().all()

    async def _usable_coupon(self, organization_id: int, code: str) -> OfferLead:
        code = (code or "").strip().upper()
        if len(code) < COUPON_MIN_LENGTH:
            raise ValidationError("Invalid coupon code")

        result = await self.db.execute(select(OfferLead).where(OfferLead.coupon_code == code))
        offer = result.scalar_one_or_none()
        if offer is None:
            raise NotFoundError("Coupon not found")
        if offer.organization_id != organization_id:
            raise PermissionDeniedError("Coupon not valid for this store")
        if offer.redeemed:
            raise ValidationError("Coupon already redeemed")
        if offer.coupon_expires_at is not None and offer.coupon_expires_at < utcnow():
            raise ValidationError("Coupon has expired")
        return offer

    async def validate_coupon(self, organization_id: int, code: str) -> Dict[str, Any]:
        offer = await self._usable_coupon(organization_id, code)
        return {
            "valid": True,
            "customer_name": offer.customer_name,
            "phone": offer.phone,
            "locality": offer.locality,
            "prize": offer.prize_won,
            "coupon_code": offer.coupon_code,
            "expires_at": offer.coupon_expires_at,
        }

    async def redeem_coupon(self, organization_id: int, user_id: int, code: str) -> Dict[str, Any]:
        offer = await self._usable_coupon(organization_id, code)
        now = utcnow()
        offer.redeemed = True
        offer.redeemed_at = now
        offer.redeemed_by = user_id
        offer.updated_at = now
        await self.db.commit()

        logger.info(f"Coupon {offer.coupon_code} redeemed by user {user_id}")
        return {
            "redeemed": True,
            "customer_name": offer.customer_name,
            "prize": offer.prize_won,
            "redeemed_at": now,
        }

    async def convert(self, offer: OfferLead, data: OfferConvertRequest) -> Lead:
        """Record the walk-in as a lead credited to the offer's sales rep."""
        if offer.converted_to_lead_id is not None:
            raise ValidationError("Offer lead already converted")

        lead_data = data.model_copy(update={
            "customer_name": offer.customer_name,
            "customer_phone": offer.phone,
        })
        lead = await LeadService(self.db).create_lead(offer.organization_id, offer.sales_rep_id, lead_data)

        offer.converted_to_lead_id = lead.id
        offer.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"Offer lead {offer.id} converted to lead {lead.id}")
        return lead

    # ---- settings ----

    async def get_settings(self, organization_id: int) -> Dict[str, Any]:
        organization = await OrganizationService(self.db).get_organization(organization_id)
        return settings_payload(organization)

    async def update_settings(self, organization_id: int, data: OfferSettingsUpdate) -> Dict[str, Any]:
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No valid fields to update")

        organization = await OrganizationService(self.db).get_organization(organization_id)
        if "whatsapp_number" in changes:
            organization.offer_whatsapp_number = data.whatsapp_number or None
        if "prizes" in changes:
            organization.offer_prizes = [p.model_dump() for p in data.prizes] if data.prizes else None
        if changes.get("enabled") is not None:
            organization.offer_enabled = bool(data.enabled)

        await self.db.commit()
        await self.db.refresh(organization)
        logger.info(f"Offer settings updated for organization {organization_id}: {sorted(changes)}")
        return settings_payload(organization)
