"""Promotional code repository."""

from sqlalchemy import select

from agrifaas.db.models.promo_code import PromoCodeUsage, PromotionalCode
from agrifaas.db.repositories.base import BaseRepository


class PromoCodeRepository(BaseRepository[PromotionalCode, str]):
    """Repository for promotional codes and their usage records."""

    async def get_by_code(self, code: str) -> PromotionalCode | None:
        """Look up a code by its normalized (upper-case) form."""
        stmt = select(PromotionalCode).where(PromotionalCode.code == code.strip().upper())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_usage(self, promo_code_id: str, payment_reference: str) -> PromoCodeUsage | None:
        """Get the usage record for one payment reference, if any."""
        stmt = select(PromoCodeUsage).where(
            PromoCodeUsage.promo_code_id == promo_code_id,
            PromoCodeUsage.payment_reference == payment_reference,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_usages(self, promo_code_id: str) -> list[PromoCodeUsage]:
        """List every usage record of a code, oldest first."""
        stmt = (
            select(PromoCodeUsage)
            .where(PromoCodeUsage.promo_code_id == promo_code_id)
            .order_by(PromoCodeUsage.applied_at, PromoCodeUsage.usage_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
