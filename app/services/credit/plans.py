"""Static catalog of purchasable credit packs."""

from dataclasses import dataclass
from typing import Dict, List

from app.services.credit.exceptions import ValidationError


@dataclass(frozen=True)
class CreditPlan:
    id: str
    name: str
    credit_amount: int
    price: int  # major currency units (NGN)
    currency: str = "NGN"

    @property
    def price_minor_units(self) -> int:
        """Amount charged by the gateway, in kobo."""
        return self.price * 100


PLANS: List[CreditPlan] = [
    CreditPlan(id="1_credit", name="1 AI Credit", credit_amount=1, price=100),
    CreditPlan(id="8_credits", name="8 AI Credits", credit_amount=8, price=500),
]

_PLANS_BY_ID: Dict[str, CreditPlan] = {plan.id: plan for plan in PLANS}


def get_plan(plan_id: str) -> CreditPlan:
    """
    Resolve a plan id against the catalog.

    Raises:
        ValidationError: If the plan id is unknown
    """
    plan = _PLANS_BY_ID.get(plan_id)
    if plan is None:
        raise ValidationError(
            f"Invalid plan selected: {plan_id}",
            context={"plan_id": plan_id, "available_plans": list(_PLANS_BY_ID)}
        )
    return plan
