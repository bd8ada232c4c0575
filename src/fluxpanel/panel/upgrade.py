from __future__ import annotations

from fluxpanel.api.client import FluxClient

PLANS: tuple[dict, ...] = (
    {
        "id": "free",
        "name": "Free",
        "price": "$0",
        "period": "forever",
        "features": ["2 live trades total", "Up to $500 account equity", "Unlimited paper trading", "Basic analytics"],
    },
    {
        "id": "plus",
        "name": "Plus",
        "price": "$14.99",
        "period": "/month",
        "features": [
            "Unlimited live trades",
            "Up to $5,000 account equity",
            "Unlimited paper trading",
            "Full analytics suite",
            "Email support",
        ],
    },
    {
        "id": "pro",
        "name": "Pro",
        "price": "$29.99",
        "period": "/month",
        "features": [
            "Unlimited live trades",
            "No equity limits",
            "Unlimited paper trading",
            "Full analytics suite",
            "Priority support",
            "Early access to features",
        ],
    },
)

PLAN_ORDER = {p["id"]: i for i, p in enumerate(PLANS)}


class UpgradeFlow:
    def __init__(self, client: FluxClient):
        self.client = client
        self.current_plan = "free"
        self.upgrading: str | None = None
        self.error: str | None = None
        self.success: str | None = None

    def load(self) -> str:
        res = self.client.subscription_limits() or {}
        if res.get("ok"):
            self.current_plan = res.get("plan") or "free"
        return self.current_plan

    def can_upgrade(self, plan_id: str) -> bool:
        if plan_id not in PLAN_ORDER:
            raise KeyError(plan_id)
        # unknown current plans (admin, legacy) rank as free
        return PLAN_ORDER[plan_id] > PLAN_ORDER.get(self.current_plan, 0)

    def upgrade(self, plan_id: str) -> bool:
        if plan_id == self.current_plan or not self.can_upgrade(plan_id):
            return False
        self.upgrading = plan_id
        self.error = None
        self.success = None
        try:
            res = self.client.upgrade_subscription(plan_id) or {}
            if res.get("ok"):
                self.current_plan = plan_id
                self.success = f"Successfully upgraded to {plan_id.capitalize()}!"
                return True
            self.error = res.get("error") or "Upgrade failed"
            return False
        except Exception as e:
            self.error = str(e) or "Upgrade failed"
            return False
        finally:
            self.upgrading = None

    def view(self) -> dict:
        cur = PLAN_ORDER.get(self.current_plan, 0)
        plans = []
        for p in PLANS:
            rank = PLAN_ORDER[p["id"]]
            plans.append(
                dict(
                    p,
                    current=p["id"] == self.current_plan,
                    can_upgrade=rank > cur,
                    downgrade=rank < cur,
                )
            )
        return {
            "current_plan": self.current_plan,
            "plans": plans,
            "upgrading": self.upgrading,
            "error": self.error,
            "success": self.success,
        }
