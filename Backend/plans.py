import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from errors import RecordNotFound


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: int
    period: str
    perks: List[str] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def load_plans(path: str) -> Dict[str, Plan]:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)["plans"]
    return {plan_id: Plan(**info) for plan_id, info in raw.items()}


def list_plans(plans: Dict[str, Plan]) -> List[Plan]:
    return sorted(plans.values(), key=lambda p: p.price)


def get_plan(plans: Dict[str, Plan], plan_id: str) -> Plan:
    if not plan_id or plan_id not in plans:
        raise RecordNotFound(f"Plan not found: {plan_id}")
    return plans[plan_id]
