import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mindful_meals.models import IngredientUsage, UserIngredient
from mindful_meals.schemas import UsageReport

logger = logging.getLogger(__name__)


def _naive_utc(value: Optional[datetime]):
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def get_usage_report(
    db: AsyncSession,
    user_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> UsageReport:
    """Total quantity used per day across all of a user's pantry stock."""
    start_date = _naive_utc(start_date)
    end_date = _naive_utc(end_date)

    query = (
        select(IngredientUsage)
        .join(UserIngredient, UserIngredient.user_ingredient_id == IngredientUsage.user_ingredient_id)
        .where(UserIngredient.user_id == user_id)
        .order_by(IngredientUsage.usage_date)
    )
    if start_date:
        query = query.where(IngredientUsage.usage_date >= start_date)
    if end_date:
        query = query.where(IngredientUsage.usage_date <= end_date)

    result = await db.execute(query)
    usages = result.scalars().all()
    logger.info(f"Found {len(usages)} usage records for user {user_id}")

    usage_data = {}
    for usage in usages:
        day = usage.usage_date.date().isoformat()
        usage_data[day] = usage_data.get(day, 0) + usage.used_quantity
    return UsageReport(user_id=user_id, start_date=start_date, end_date=end_date, usage=usage_data)
