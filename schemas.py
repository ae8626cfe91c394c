from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from reports import Budget


class BudgetIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_revenue: float = Field(0, alias="targetRevenue")
    target_expenses: float = Field(0, alias="targetExpenses")
    target_profit: float = Field(0, alias="targetProfit")

    def to_budget(self) -> Budget:
        return Budget(
            target_revenue=self.target_revenue,
            target_expenses=self.target_expenses,
            target_profit=self.target_profit,
        )


class ItemIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=120)
    value: float = 0
    subsection: Optional[str] = Field(default=None, max_length=40)


class ItemUpdateIn(BaseModel):
    value: float


class ItemRenameIn(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=120)


class ReportIn(BaseModel):
    categories: dict[str, dict[str, float]] = Field(default_factory=dict)
    subcategories: Optional[dict[str, dict[str, str]]] = None
    budget: Optional[BudgetIn] = None


class TotalsOut(BaseModel):
    total_kitchen: float
    total_bar: float
    total_cost_of_goods: float
    total_salary: float
    total_distributor: float
    total_utilities: float
    total_operational: float
    total_other: float
    total_revenue: float
    total_expenses: float
    gross_profit: float
    net_profit: float
    gross_profit_rule: str


class ReportOut(BaseModel):
    month: str
    source: str
    healed: bool
    items: dict[str, dict[str, float]]
    subcategories: dict[str, dict[str, str]]
    budget: Optional[dict[str, float]]
    totals: TotalsOut


class NotificationOut(BaseModel):
    id: int
    title: str
    description: str
    variant: str
