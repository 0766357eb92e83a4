"""Service for managing transport pricing rules."""
from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from fulfillment.core.exceptions import NotFoundError, ValidationError
from fulfillment.models.transport_pricing import TransportPricingRule
from fulfillment.schemas.transport_pricing import (
    TransportPricingRuleCreate, TransportPricingRuleUpdate, BOUND_PAIRS,
)


logger = logging.getLogger(__name__)


class TransportPricingService:
    """
    CRUD for pricing rules.

    Shipments keep the id of the rule that priced them as a plain reference,
    so editing or deleting a rule never touches a priced shipment.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rule(self, rule_id: uuid.UUID) -> Optional[TransportPricingRule]:
        return await self.db.get(TransportPricingRule, rule_id)

    async def get_rule_or_404(self, rule_id: uuid.UUID) -> TransportPricingRule:
        rule = await self.get_rule(rule_id)
        if not rule:
            raise NotFoundError("Transport pricing rule", rule_id)
        return rule

    async def list_rules(
        self,
        transport_type: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[TransportPricingRule], int]:
        """List rules in evaluation order (priority desc, oldest first)."""
        stmt = select(TransportPricingRule).order_by(
            TransportPricingRule.priority.desc(),
            TransportPricingRule.created_at.asc(),
        )

        filters = []
        if transport_type:
            filters.append(TransportPricingRule.transport_type == transport_type)
        if is_active is not None:
            filters.append(TransportPricingRule.is_active == is_active)

        if filters:
            stmt = stmt.where(and_(*filters))

        count_stmt = select(func.count(TransportPricingRule.id))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def create_rule(self, data: TransportPricingRuleCreate) -> TransportPricingRule:
        rule_data = data.model_dump()
        rule_data["transport_type"] = data.transport_type.value
        rule_data["type"] = data.type.value
        rule = TransportPricingRule(**rule_data)

        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Pricing rule {rule.id} '{rule.name}' created ({rule.transport_type}, priority {rule.priority})")
        return rule

    async def update_rule(self, rule_id: uuid.UUID, data: TransportPricingRuleUpdate) -> TransportPricingRule:
        rule = await self.get_rule_or_404(rule_id)

        update_data = data.model_dump(exclude_unset=True)
        for key in ("name", "transport_type", "type", "price_eur", "priority", "is_active"):
            if key in update_data and update_data[key] is None:
                raise ValidationError(f"{key} cannot be null", field=key)
        for low_name, high_name in BOUND_PAIRS:
            low = update_data.get(low_name, getattr(rule, low_name))
            high = update_data.get(high_name, getattr(rule, high_name))
            if low is not None and high is not None and low > high:
                raise ValidationError(f"{low_name} must not exceed {high_name}", field=low_name)

        for key, value in update_data.items():
            setattr(rule, key, value.value if hasattr(value, "value") else value)

        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Pricing rule {rule.id} updated: {', '.join(sorted(update_data)) or 'no changes'}")
        return rule

    async def delete_rule(self, rule_id: uuid.UUID, hard_delete: bool = True) -> bool:
        """Delete a rule, or only deactivate it."""
        rule = await self.get_rule_or_404(rule_id)

        if hard_delete:
            await self.db.delete(rule)
        else:
            rule.is_active = False

        await self.db.commit()
        logger.info(f"Pricing rule {rule_id} {'deleted' if hard_delete else 'deactivated'}")
        return True
