from typing import Mapping

from models import Category, ReportField, Subsection

# Bumped whenever the starter templates change so stored documents can be
# re-healed by the maintenance job.
TEMPLATE_VERSION = 1

DEFAULT_KITCHEN_ITEMS: dict[str, float] = {
    "Il Classico": 0,
    "Il Prosciutto": 0,
    "Il Piccante": 0,
    "La Porchetta": 0,
    "La Mortadella": 0,
    "La Buffala": 0,
    "Tiramisu": 0,
    "Platou": 0,
}

DEFAULT_BAR_ITEMS: dict[str, float] = {
    "Espresso": 0,
    "Cappuccino": 0,
    "Aperol Spritz": 0,
    "Hugo": 0,
    "Vin roșu": 0,
    "Vin alb": 0,
    "Bere": 0,
    "Apa plată": 0,
    "Apa minerală": 0,
}

DEFAULT_SALARY_EXPENSES: dict[str, float] = {
    "Adi": 4050,
    "Ioana": 4050,
    "Andreea": 4050,
    "Victoria": 4050,
}

DEFAULT_DISTRIBUTOR_EXPENSES: dict[str, float] = {
    "Maria FoodNova": 0,
    "CocaCola": 0,
    "24H": 0,
    "Sinless": 0,
    "Peroni": 0,
    "Sudavangarde(Brutarie Foccacia)": 0,
    "Proporzioni": 0,
    "LIDL": 0,
    "Metro": 0,
}

DEFAULT_UTILITIES_EXPENSES: dict[str, float] = {
    "Gaze(Engie)": 0,
    "Apa": 0,
    "Curent": 0,
    "Gunoi(Iridex)": 0,
    "Internet": 0,
}

DEFAULT_OPERATIONAL_EXPENSES: dict[str, float] = {
    "Contabilitate": 0,
    "ECR": 0,
    "ISU": 0,
    "Chirie": 0,
    "Protectia Muncii": 0,
}

CATEGORY_DEFAULTS: dict[Category, dict[str, float]] = {
    Category.kitchen: DEFAULT_KITCHEN_ITEMS,
    Category.bar: DEFAULT_BAR_ITEMS,
    Category.cost_of_goods: {},
    Category.salary: DEFAULT_SALARY_EXPENSES,
    Category.distributor: DEFAULT_DISTRIBUTOR_EXPENSES,
    Category.utilities: DEFAULT_UTILITIES_EXPENSES,
    Category.operational: DEFAULT_OPERATIONAL_EXPENSES,
    Category.other: {},
}


def field_defaults(field: ReportField) -> dict[str, float]:
    merged: dict[str, float] = {}
    for category, items in CATEGORY_DEFAULTS.items():
        if category.field is field:
            merged.update(items)
    return merged


def default_subcategories() -> dict[str, dict[str, str]]:
    revenue = {name: Subsection.kitchen.value for name in DEFAULT_KITCHEN_ITEMS}
    revenue.update({name: Subsection.bar.value for name in DEFAULT_BAR_ITEMS})
    return {"revenueItems": revenue, "expenses": {}}


def merge_with_defaults(
    field: ReportField, stored: Mapping[str, float]
) -> tuple[dict[str, float], bool]:
    """Overlay ``stored`` on the field's template.

    Stored values always win; the flag reports whether any template key had
    to be added.
    """
    template = field_defaults(field)
    merged = {**template, **stored}
    missing = any(name not in stored for name in template)
    return merged, missing
