from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REWARDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Urza Rewards"
    debug: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Ledger rules
    referral_points: int = 100
    min_withdrawal: int = 500
    withdrawal_step: int = 100
    quick_withdrawal_amounts: List[int] = Field(default_factory=lambda: [500, 1000, 2000, 5000])

    # Session
    phone_prefix: str = "+91"
    invite_base_url: str = "https://urzarewards.com/ref"

    # Simulated latency at the presentation boundary (seconds)
    otp_send_delay: float = 1.5
    otp_verify_delay: float = 1.5
    referral_submit_delay: float = 1.5
    withdrawal_delay: float = 2.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
