import os
from typing import Optional

from pydantic import BaseModel


class Settings(BaseModel):
    app_name: str = "Attendance Hub API"
    version: str = "0.3.0"
    host: str = os.getenv("APP_HOST", "0.0.0.0")
    port: int = int(os.getenv("APP_PORT", "8899"))
    debug: bool = os.getenv("DEBUG", "0") == "1"

    # "memory" keeps everything in-process (dev/tests), "sqlserver" uses pyodbc
    DB_BACKEND: str = os.getenv("DB_BACKEND", "memory")
    DB_SERVER: str = os.getenv("DB_SERVER", "localhost")
    DB_NAME: str = os.getenv("DB_NAME", "attendance_db")
    DB_USER: str = os.getenv("DB_USER", "dbuser")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    ODBC_DRIVER: str = os.getenv("ODBC_DRIVER", "ODBC Driver 18 for SQL Server")
    DB_LOG_SQL: bool = os.getenv("DB_LOG_SQL", "0") == "1"

    # client-local key/value file (migration flag, integration configs)
    SETTINGS_PATH: str = os.getenv("SETTINGS_PATH", "./storage/client_settings.json")

    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
    QUERY_TIMEOUT_SECONDS: float = float(os.getenv("QUERY_TIMEOUT_SECONDS", "15"))

    # fixed "today" (YYYY-MM-DD) for demos against historical data
    ATTENDANCE_TODAY_OVERRIDE: Optional[str] = os.getenv("ATTENDANCE_TODAY_OVERRIDE") or None


settings = Settings()
