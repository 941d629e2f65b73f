"""Configuration management using Pydantic Settings"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dealership_risk.domain.models import ScoringParameters


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="DEALERSHIP_RISK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service
    service_name: str = "dealership-risk"
    log_level: str = "INFO"

    # Normalization baselines
    base_price: float = Field(5000, gt=0)  # Typical service bill
    max_delay_days: int = Field(30, gt=0)
    max_repeat_issues: int = Field(2, gt=0)
    max_feedback_stars: int = Field(5, gt=0)
    recency_cap_days: int = Field(180, gt=0)  # Days without a visit at which recency risk saturates

    def scoring_parameters(self) -> ScoringParameters:
        return ScoringParameters(
            base_price=self.base_price,
            max_delay_days=self.max_delay_days,
            max_repeat_issues=self.max_repeat_issues,
            max_feedback_stars=self.max_feedback_stars,
            recency_cap_days=self.recency_cap_days,
        )


settings = Settings()
