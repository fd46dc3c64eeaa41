from pathlib import Path

from pydantic_settings import BaseSettings

_DATA_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    storage_backend: str = "file"  # "file" (JSON files on disk) or "memory"
    storage_dir: str = "./console_state"
    data_source: str = "fixture"
    fixture_path: str = str(_DATA_DIR / "trouble_codes.yaml")
    catalog_path: str = str(_DATA_DIR / "modules.yaml")
    vehicles_path: str = str(_DATA_DIR / "vehicles.yaml")
    cors_origins: str = "http://localhost:3000"
    session_history_limit: int = 10
    action_log_limit: int = 50
    module_history_limit: int = 50
    navigation_history_limit: int = 10
    checkpoint_delay_seconds: float = 0.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
