from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"

    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    request_timeout_seconds: float = 30.0

    cbe_url_template: str = "https://apps.cbe.com.et:100/?id={reference}{suffix}"
    telebirr_url_template: str = "https://transactioninfo.ethiotelecom.et/receipt/{reference}"
    telebirr_relay_url_template: str = "https://leul.et/verify.php?reference={reference}"
    telebirr_timeout_seconds: float = 15.0
    telebirr_skip_primary: bool = False
    dashen_url_template: str = "https://receipt.dashensuperapp.com/receipt/{reference}"
    abyssinia_url_template: str = (
        "https://cs.bankofabyssinia.com/api/onlineSlip/getDetails/?id={reference}{suffix}"
    )
    cbe_birr_url_template: str = "https://cbepay1.cbe.com.et/aureceipt?TID={reference}&PH={phone}"

    browser_enabled: bool = True
    browser_executable_path: str | None = None
    browser_max_sessions: int = 2
    browser_slot_timeout_seconds: float = 30.0
    browser_navigation_timeout_seconds: float = 20.0
    browser_capture_window_seconds: float = 3.0

    vision_api_key: str | None = None
    vision_base_url: str = "https://api.mistral.ai/v1"
    vision_model: str = "pixtral-12b"
    vision_timeout_seconds: float = 30.0


settings = Settings()
