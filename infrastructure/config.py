"""Application configuration using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.enums import WeekendStayRule
from domain.value_objects import PricingPolicy


class Settings(BaseSettings):
    """Application settings loaded from BOOKING_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Property Booking Rate API"
    debug: bool = False
    log_level: str = "INFO"

    # Pricing
    currency: str = "IDR"
    weekend_days: List[int] = [5, 6]  # 0 = Sunday; Friday and Saturday nights
    weekend_stay_rule: WeekendStayRule = WeekendStayRule.ANY_NIGHT
    peak_months: List[int] = [7, 8, 12]
    tax_percent: Decimal = Decimal("0")
    max_stay_nights: int = 365

    # Deposits
    allowed_dp_percentages: List[int] = [30, 50, 70, 100]
    default_dp_percentage: int = 30

    @field_validator("default_dp_percentage")
    @classmethod
    def default_dp_is_allowed(cls, v, info):
        allowed = info.data.get("allowed_dp_percentages")
        if allowed and v not in allowed:
            raise ValueError("default_dp_percentage must be one of allowed_dp_percentages")
        return v

    def pricing_policy(self) -> PricingPolicy:
        """Build the domain pricing policy from settings."""
        return PricingPolicy(
            weekend_days=frozenset(self.weekend_days),
            weekend_stay_rule=self.weekend_stay_rule,
            peak_months=frozenset(self.peak_months),
            allowed_dp_percentages=tuple(self.allowed_dp_percentages),
            tax_percent=self.tax_percent,
            currency=self.currency,
            max_stay_nights=self.max_stay_nights,
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
