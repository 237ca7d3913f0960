from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Printify
    printify_api_base: str = "https://api.printify.com/v1"
    printify_timeout_seconds: float = 30.0
    default_printify_shop_id: str = "24702235"
    default_variant_price_cents: int = 2900
    # SwiftPOD, Monster Digital, Printify Choice
    provider_priority: list[int] = [29, 25, 3]

    # Catalog cache
    catalog_ttl_seconds: float = 3600.0
    catalog_max_scopes: int | None = 64

    # Archive handling
    max_archive_bytes: int = 50 * 1024 * 1024
    main_image_marker: str = "original"
    mockup_marker: str = "mockup"
    strict_listing_fields: bool = False

    # AI text cleanup
    google_ai_api_key: str = ""
    gemini_text_model: str = "gemini-2.5-flash"
    listing_text_max_chars: int = 3000

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""
    cors_allow_origins: list[str] = ["*"]


settings = Settings()
