from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./quotes.db"
    COMPANY_NAME: str = "Sue Events"
    LOG_LEVEL: str = "INFO"

    # Quote numbering: PREFIX-YYYY-NNN
    QUOTE_NUMBER_PREFIX: str = "SUE"

    # Input-construction defaults; the pricing engine never reads these
    DEFAULT_MARGIN_SOCIAL: float = 25.0
    DEFAULT_MARGIN_CORPORATIVO: float = 30.0
    DEFAULT_RETENTION_PCT: float = 4.0
    RETENTION_BASE_MODE: str = "subtotal_plus_margin_v2"

    class Config:
        env_file = ".env"


settings = Settings()
