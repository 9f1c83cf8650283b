import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    PORT: int = int(os.getenv("PORT", "8080"))

    # Self.xyz verification
    SELF_ENDPOINT: str = os.getenv("SELF_ENDPOINT", "")
    SELF_VERIFIER_URL: str = os.getenv("SELF_VERIFIER_URL", "")
    SELF_VERIFIER_TIMEOUT_SEC: float = float(os.getenv("SELF_VERIFIER_TIMEOUT_SEC", "15"))
    # Staging passports + staging_https endpoint type
    SELF_MOCK_PASSPORT: bool = os.getenv("SELF_MOCK_PASSPORT", "false").lower() == "true"
    SELF_SCOPE: str = os.getenv("SELF_SCOPE", "")
    SELF_APP_NAME: str = os.getenv("SELF_APP_NAME", "Self Discord Verification")
    SELF_LOGO_URL: str = os.getenv("SELF_LOGO_URL", "https://i.postimg.cc/mrmVf9hm/self.png")

    # Acceptance policy
    MINIMUM_AGE: int = int(os.getenv("MINIMUM_AGE", "18"))
    OFAC_CHECK: bool = os.getenv("OFAC_CHECK", "true").lower() == "true"

    # Discord
    DISCORD_BOT_TOKEN: str = os.getenv("DISCORD_BOT_TOKEN", "")
    DISCORD_CLIENT_ID: str = os.getenv("DISCORD_CLIENT_ID", "")
    DISCORD_GUILD_ID: str = os.getenv("DISCORD_GUILD_ID", "")
    DISCORD_VERIFIED_ROLE_ID: str = os.getenv("DISCORD_VERIFIED_ROLE_ID", "")

    # "qr": QR attachment + link button, "link": link button only
    DELIVERY_MODE: str = os.getenv("DELIVERY_MODE", "qr").lower()

    # Pending sessions
    SESSION_TTL_SEC: int = int(os.getenv("SESSION_TTL_SEC", "1800"))
    # 0 disables the background sweeper (create() still sweeps opportunistically)
    SESSION_SWEEP_INTERVAL_SEC: int = int(os.getenv("SESSION_SWEEP_INTERVAL_SEC", "60"))

    SHORT_LINK_BASE_URL: str = os.getenv("SHORT_LINK_BASE_URL", "")

    # Audit log (JSON lines). Empty string disables the file sink.
    EVENT_LOG_PATH: str = os.getenv("EVENT_LOG_PATH", "logs/discord-verifier.log")
    ENABLE_LOG_REDACTION: bool = os.getenv("ENABLE_LOG_REDACTION", "true").lower() == "true"

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

    def short_link_base(self) -> str:
        if self.SHORT_LINK_BASE_URL:
            return self.SHORT_LINK_BASE_URL.rstrip("/")
        if not self.SELF_ENDPOINT:
            return ""
        return self.SELF_ENDPOINT.replace("/api/verify", "").rstrip("/")

settings = Settings()
