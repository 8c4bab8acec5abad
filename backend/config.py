"""
Battery Line MES - System Configuration
Version: 1.2.0

Changelog:
v1.2.0 (2026-10-12): Dashboard shift window and cycle-time plausibility bound
v1.1.0 (2026-10-05): Request timeout, SQLite busy timeout, batch generation ceiling
v1.0.0 (2026-09-28): Initial configuration module
"""

from pydantic_settings import BaseSettings
from pathlib import Path
import os


class Settings(BaseSettings):
    """System-wide configuration"""

    # Application
    APP_NAME: str = "Battery Line MES"
    APP_VERSION: str = "1.2.0"
    DEBUG: bool = False

    # API Server
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_WORKERS: int = 1

    # SQLite Configuration
    SQLITE_DB_PATH: str = str(Path(__file__).parent / "data" / "battery_line.db")
    DB_BUSY_TIMEOUT_S: float = 10.0  # sqlite busy wait before "database is locked"

    # Every request is bounded; expiry is reported as a timeout, not a business error
    REQUEST_TIMEOUT_S: float = 30.0

    # File Paths
    DATA_DIR: str = str(Path(__file__).parent / "data")
    LOGS_DIR: str = str(Path(__file__).parent / "logs")

    # Work Order Numbering
    WORK_ORDER_PREFIX: str = "WO"  # WO-2026-00001

    # Serial generation (LOT_BASED / ACCESSORIES)
    SERIAL_PREFIX: str = "SN"
    MAX_BATCH_QTY: int = 100  # units per tray / lot call

    # Label printing
    PRINT_ENABLED: bool = True
    NAMEPLATE_LABEL: str = "NAMEPLATE"
    CARTON_LABEL: str = "CARTON1"
    BOX_LABEL: str = "BOX_LABEL"

    # Dashboard
    CYCLE_TIME_MAX_HOURS: float = 48.0
    SHIFT_START_HOUR: int = 6
    SHIFT_END_HOUR: int = 22

    # WebSocket Configuration
    WS_UPDATE_INTERVAL: float = 5.0  # seconds
    WS_MAX_CONNECTIONS: int = 50

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Singleton instance
settings = Settings()


def init_directories():
    """Create necessary directories if they don't exist"""
    for directory in [settings.DATA_DIR, settings.LOGS_DIR]:
        os.makedirs(directory, exist_ok=True)


if __name__ == "__main__":
    print(f"{settings.APP_NAME} Configuration v{settings.APP_VERSION}")
    print(f"SQLite: {settings.SQLITE_DB_PATH}")
    print(f"Request timeout: {settings.REQUEST_TIMEOUT_S}s")
    print(f"Batch ceiling: {settings.MAX_BATCH_QTY} units")
    print(f"Shift window: {settings.SHIFT_START_HOUR}:00 - {settings.SHIFT_END_HOUR}:00")
