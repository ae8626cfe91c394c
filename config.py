import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        local_store_path: Path,
        timezone: str,
        secret_key: str,
        gross_profit_rule: str,
        currency_label: str,
    ) -> None:
        self.database_url = database_url
        self.local_store_path = local_store_path
        self.timezone = timezone
        self.secret_key = secret_key
        self.gross_profit_rule = gross_profit_rule
        self.currency_label = currency_label


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("PL_REPORTS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "reports.db"
    database_url = os.getenv("PL_REPORTS_DATABASE_URL", f"sqlite:///{default_db}")
    local_store_path = Path(
        os.getenv("PL_REPORTS_LOCAL_STORE", str(data_dir / "local_reports.json"))
    )
    timezone = os.getenv("PL_REPORTS_TIMEZONE", "Europe/Bucharest")
    secret_key = os.getenv(
        "PL_REPORTS_SECRET",
        "5c0f6d1e2a9b47c3b8e4f27d61a0c93e8d7b2f4a6c1e9053b7d8a2f4c6e1b903",
    )
    gross_profit_rule = os.getenv("PL_REPORTS_GROSS_PROFIT_RULE", "revenue")
    currency_label = os.getenv("PL_REPORTS_CURRENCY_LABEL", "RON")
    return Settings(
        database_url=database_url,
        local_store_path=local_store_path,
        timezone=timezone,
        secret_key=secret_key,
        gross_profit_rule=gross_profit_rule,
        currency_label=currency_label,
    )
