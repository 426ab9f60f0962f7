from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    database_url: str = ""
    sql_echo: bool = False
    session_secret: str = "fallback-secret"  # 🔐 Replace in production

    # Shopify fulfillment
    shopify_api_version: str = "2023-10"
    shopify_timeout_seconds: float = 30.0
    shopify_tracking_company: str = "Local Delivery Service"

    # POD capture rules
    require_delivery_photo: bool = True
    max_photo_bytes: int = 10 * 1024 * 1024  # 10MB

    # DigitalOcean Spaces (optional, photos fall back to inline data URLs)
    do_spaces_key: Optional[str] = None
    do_spaces_secret: Optional[str] = None
    do_spaces_region: str = "nyc3"
    do_spaces_bucket: Optional[str] = None
    do_spaces_endpoint: Optional[str] = None  # e.g. https://nyc3.digitaloceanspaces.com
    do_spaces_cdn_base: Optional[str] = None
    do_spaces_prefix: str = "prod"

    encryption_master_key: str = "default-insecure-key-change-in-production"

    @property
    def spaces_configured(self) -> bool:
        return all([
            self.do_spaces_key,
            self.do_spaces_secret,
            self.do_spaces_bucket,
            self.do_spaces_endpoint,
            self.do_spaces_cdn_base,
        ])


settings = Settings()
