"""Application configuration."""
from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings."""
    
    # App
    app_name: str = "Plate Randomizer"
    debug: bool = False
    log_level: str = "INFO"
    
    # Plate geometry used when a request leaves it out (96-well)
    default_rows: int = 8
    default_columns: int = 12
    
    # Solver
    optimization_max_passes: int = 100
    random_seed: Optional[int] = None  # unset: every run draws fresh randomness
    
    # CORS
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    
    class Config:
        env_prefix = "PLATE_RANDOMIZER_"
        env_file = ".env"


settings = Settings()
