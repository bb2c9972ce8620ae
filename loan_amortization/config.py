import logging
from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "AMORTIZATION_"}

    # Cache
    default_cache_ttl: int = 3600  # Seconds

    # Rounding drift tolerated on final balances and principal cross-checks
    money_tolerance: Decimal = Decimal("0.02")

    # Schedules
    default_frequency: str = "monthly"

    # Alternative scenarios
    balloon_scenario_pct: Decimal = Decimal("0.20")
    variable_rate_step: Decimal = Decimal("0.5")  # Percentage points per block
    variable_rate_blocks: int = 3

    # App
    log_level: str = "INFO"


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level for host applications that want it."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
