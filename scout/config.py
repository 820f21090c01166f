# config.py – Chargement des paramètres via pydantic-settings

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

# Jeux suivis sur le dashboard "Top games"
DEFAULT_TOP_GAME_IDS: List[int] = [
    730,      # Counter-Strike 2
    570,      # Dota 2
    440,      # Team Fortress 2
    1172470,  # Apex Legends
    578080,   # PUBG
    1599340,  # Lost Ark
    252490,   # Rust
    271590,   # GTA V
    1245620,  # Elden Ring
    892970,   # Valheim
    1091500,  # Cyberpunk 2077
    814380,   # Sekiro
    1174180,  # Red Dead Redemption 2
    359550,   # Rainbow Six Siege
    413150,   # Stardew Valley
    367520,   # Hollow Knight
    391540,   # Undertale
    1086940,  # Baldur's Gate 3
    105600,   # Terraria
    945360,   # Among Us
]


class Settings(BaseSettings):
    # — Database —
    DB_URL: str = "sqlite:///data/scout.db"

    # — Clerk (identity) —
    CLERK_SECRET_KEY: Optional[str] = None  # sans clé, tout le monde est anonyme
    CLERK_API_URL: str = "https://api.clerk.com/v1"
    CLERK_WEBHOOK_SECRET: Optional[str] = None  # whsec_..., signature svix des webhooks

    # — Steam —
    STEAM_STORE_URL: str = "https://store.steampowered.com"
    STEAM_WEB_API_URL: str = "https://api.steampowered.com"
    STEAM_TIMEOUT_SECONDS: float = 8.0
    STEAM_MAX_RETRIES: int = 2
    STEAM_QUOTA_WINDOW: float = 300.0  # secondes
    STEAM_QUOTA_MAX: int = 100         # requêtes sortantes par window
    TOP_GAME_IDS: List[int] = DEFAULT_TOP_GAME_IDS

    # — Cache & rate limiting —
    CACHE_TTL_SECONDS: float = 300.0
    RATE_LIMIT_SWEEP_SECONDS: float = 300.0

    # — HTTP —
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
