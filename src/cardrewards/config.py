import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from cardrewards.domain.models import RewardSettings


class Settings(BaseSettings):
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    snapshot_file: str = "data/snapshot.json"

    currency: str = "USD"
    miles_valuation: float = 0.01
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def reward_settings(self) -> RewardSettings:
        return RewardSettings(currency=self.currency, miles_valuation=self.miles_valuation)


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``cardrewards`` logger tree."""
    app_logger = logging.getLogger("cardrewards")
    app_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not app_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        app_logger.addHandler(handler)

    app_logger.propagate = False


settings = Settings()
