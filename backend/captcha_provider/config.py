from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./provider.db"

    # Provider identity
    provider_url: str = "http://localhost:9229"
    provider_secret_key: str | None = None  # base58 ed25519 keypair
    admin_token_hash: str | None = None  # Argon2id hash of the admin bearer token

    # Proof of Work
    pow_difficulty: int = 4  # leading zero hex digits
    pow_verified_timeout_ms: int = 120_000
    pow_challenge_ttl_seconds: int = 600

    # Image captchas
    captchas_per_request: int = 2
    captcha_request_timeout_ms: int = 300_000
    image_max_verified_time_ms: int = 60_000

    # Chain gateway
    chain_gateway_url: str = "http://localhost:9944"
    chain_timeout_seconds: float = 10.0
    solution_threshold: int = 80
    max_block_age: int | None = None

    # Rate Limiting
    rate_limit_challenges: str = "30/minute"
    rate_limit_solutions: str = "30/minute"
    rate_limit_verifications: str = "120/minute"

    # Maintenance
    cleanup_interval_hours: int = 1

    # Logging
    log_level: str = "info"
    log_format: str = "console"  # "console" | "json"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("pow_difficulty")
    @classmethod
    def validate_pow_difficulty(cls, v: int) -> int:
        if v < 0 or v > 64:
            raise ValueError("pow_difficulty must be between 0 and 64")
        return v


settings = Settings()
