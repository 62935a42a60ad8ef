import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from database.models import Offer, OfferStatus, User
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class OfferRepository(BaseRepository):
    def get_by_id(self, offer_id: Any) -> Optional[Offer]:
        """Resolve one offer by id regardless of status. Malformed ids resolve to None."""
        parsed = self.parse_id(offer_id)
        if parsed is None:
            logger.warning(f"Offer lookup with malformed id: {offer_id!r}")
            return None
        stmt = select(Offer).where(Offer.id == parsed)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_provider(self, provider_id: Any, include_inactive: bool = False) -> List[Offer]:
        parsed = self.parse_id(provider_id)
        if parsed is None:
            return []
        stmt = select(Offer).where(Offer.provider_id == parsed)
        if not include_inactive:
            stmt = stmt.where(Offer.status != OfferStatus.INACTIVE.value)
        stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.desc())
        return self.db.execute(stmt).scalars().all()

    def create_offer(self, provider: User, data: Dict[str, Any], rating: float = 5.0) -> Offer:
        """
        Insert an offer with a provider snapshot taken from the live user row.

        Used by the seeding script and tests; the public write path belongs to
        the CRUD service.
        """
        location = data.get('location') or {}
        coordinates = location.get('coordinates') or {}

        offer = Offer(
            title=data['title'],
            description=data['description'],
            price=data['price'],
            price_unit=data.get('price_unit', 'pacote'),
            category=data['category'],
            subcategory=data.get('subcategory'),
            provider_id=provider.id,
            provider_name=provider.display_name,
            provider_avatar=provider.avatar_url,
            provider_rating=rating,
            provider_person_type=provider.person_type or 'PF',
            images=list(data.get('images') or []),
            videos=list(data.get('videos') or []),
            city=location['city'],
            state=location['state'].upper(),
            address=location.get('address'),
            latitude=coordinates.get('lat'),
            longitude=coordinates.get('lng'),
            status=data.get('status', OfferStatus.ACTIVE.value),
            tags=[t.strip().lower() for t in data.get('tags') or []],
            availability=data.get('availability') or {},
        )
        self.db.add(offer)
        self.db.flush()
        logger.debug(f"Created offer {offer.id} for provider {provider.id}")
        return offer
