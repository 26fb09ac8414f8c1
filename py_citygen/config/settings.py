from pathlib import Path
import os

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env for local/dev environments only where values are missing from the environment
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_file = BASE_DIR / ".env"

if env_file.exists():
    file_env = dotenv_values(env_file)
    missing_keys = {k: v for k, v in file_env.items() if k not in os.environ and v is not None}
    for k, v in missing_keys.items():
        os.environ[k] = v


class Settings(BaseSettings):
    """Application settings pulled from CITYGEN_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="CITYGEN_", extra="ignore")

    # Streets
    default_street_width: float = Field(
        default=10.0, gt=0, description="Width used for streets without an explicit width"
    )

    # Lot subdivision
    min_lot_frontage: float = Field(default=10.0, gt=0, description="Minimum lot frontage")
    max_lot_frontage: float = Field(default=50.0, gt=0, description="Maximum lot frontage")
    min_lot_area: float = Field(default=200.0, gt=0, description="Minimum lot area")
    max_lot_depth: float = Field(default=40.0, gt=0, description="Nominal lot depth (not enforced yet)")
    target_lot_width: float = Field(default=25.0, gt=0, description="Preferred lot width")
    lot_jitter_seed: str = Field(default="lots", description="Seed prefix for lot jitter")

    # Rebuild scheduling
    rebuild_debounce_ms: int = Field(
        default=300, ge=0, description="Quiet period before a rebuild runs"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Logging format (console or json)")


# Instantiate singleton settings object
settings = Settings()
