"""
Ad Gating and Catalogue Service.

Decides whether an anonymous viewing session gets an ad, and records the
showing. A session sees at most ``DAILY_AD_LIMIT`` ads per calendar day; below
that, each decision point shows an ad with probability ``AD_PROBABILITY``.

The quota check and the `AdView` insert run in one storage unit of work. On
the memory backend units of work are serialised, so the cap is exact; the
relational backend accepts a soft cap under concurrent writers.
"""

import logging
import random
from typing import List, Optional

from core.exceptions import ResourceNotFoundError
from core.models import Ad, AdView
from core.validation import InputValidator
from providers.storage_provider import StorageProvider

logger = logging.getLogger(__name__)

DAILY_AD_LIMIT = 5
AD_PROBABILITY = 0.2


class AdService:
    def __init__(self, storage: StorageProvider, rng: Optional[random.Random] = None):
        self.storage = storage
        self.rng = rng or random.Random()

    async def should_show_ad(
        self, session_id: str, today: str, user_id: Optional[int] = None
    ) -> Optional[Ad]:
        """Return the ad to show (already recorded as viewed) or None"""
        async with self.storage.session() as s:
            views_today = await s.count(
                AdView, {"session_id": session_id, "viewed_date": today}
            )
            if views_today >= DAILY_AD_LIMIT:
                logger.debug(f"Session {session_id} reached the daily ad limit")
                return None

            if self.rng.random() >= AD_PROBABILITY:
                return None

            ads = await s.find(Ad, order_by=(("id", False),))
            if not ads:
                return None
            ad = self.rng.choice(ads)

            await s.add(
                AdView(user_id=user_id, session_id=session_id, ad_id=ad.id, viewed_date=today)
            )

        logger.info(f"Showing ad {ad.id} to session {session_id} ({views_today + 1} today)")
        return ad

    async def record_ad_view(
        self, session_id: str, ad_id: int, viewed_date: str, user_id: Optional[int] = None
    ) -> AdView:
        async with self.storage.session() as s:
            if await s.get(Ad, ad_id) is None:
                raise ResourceNotFoundError("ad", ad_id)
            return await s.add(
                AdView(
                    user_id=user_id,
                    session_id=session_id,
                    ad_id=ad_id,
                    viewed_date=viewed_date,
                )
            )

    async def create_ad(
        self,
        title: str,
        video_url: str,
        brand_name: str,
        description: Optional[str] = None,
        brand_logo: Optional[str] = None,
        action_url: Optional[str] = None,
    ) -> Ad:
        ad = Ad(
            title=InputValidator.sanitize_string(title, field="title", max_length=200),
            video_url=InputValidator.validate_url(video_url, field="video_url"),
            brand_name=InputValidator.sanitize_string(brand_name, field="brand_name", max_length=100),
            description=InputValidator.optional_string(description, "description", max_length=2000),
            brand_logo=(
                InputValidator.validate_url(brand_logo, field="brand_logo") if brand_logo else None
            ),
            action_url=(
                InputValidator.validate_url(action_url, field="action_url") if action_url else None
            ),
        )
        async with self.storage.session() as s:
            ad = await s.add(ad)
        logger.info(f"Created ad {ad.id} for {ad.brand_name}")
        return ad

    async def list_ads(self) -> List[Ad]:
        async with self.storage.session() as s:
            return await s.find(Ad, order_by=(("id", False),))

    async def get_ad(self, ad_id: int) -> Ad:
        async with self.storage.session() as s:
            ad = await s.get(Ad, ad_id)
        if ad is None:
            raise ResourceNotFoundError("ad", ad_id)
        return ad
