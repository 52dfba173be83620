# config.py
import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from typing import List, Optional, Set

# Load environment variables from .env file
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    # override=True so .env values win over stale shell exports during development
    load_dotenv(dotenv_path, override=True)


class Settings(BaseSettings):
    """Application configuration settings."""

    # --- FastAPI Specific Settings ---
    FASTAPI_HOST: str = '127.0.0.1'
    FASTAPI_PORT: int = 8001

    # --- Supabase Configuration ---
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None # This is the ANON public key
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None # This is the secret service key
    SUPABASE_DB_CONN_STRING: Optional[str] = None

    # --- General App Settings ---
    APP_NAME: str = "BudgetWise API"
    DEBUG_MODE: bool = os.environ.get('DEBUG_MODE', 'True').lower() in ('true', '1', 't')
    CORS_ORIGINS: List[str] = [
        "http://localhost",
        "http://localhost:3000",   # Next.js dev server
        "http://localhost:9002",
    ]

    ALLOWED_EXTENSIONS: Set[str] = {'csv', 'txt'}
    MAX_UPLOAD_BYTES: int = 2 * 1024 * 1024

    # --- Money / Reporting ---
    CURRENCY_SYMBOL: str = '₱'
    FORECAST_MONTHS: int = 6
    MAX_OCCURRENCES: int = 100_000 # Cap on occurrences materialized per expansion call

    # --- LLM Settings ---
    GOOGLE_API_KEY: Optional[str] = None # Loaded from .env by BaseSettings
    LLM_MODEL_NAME: str = 'gemini-1.5-flash'

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'


settings = Settings()


# Optional: Print loaded settings if running directly (useful for debugging config)
if __name__ == "__main__":
    print("\n--- Configuration Settings Loaded ---")
    print(f"  FastAPI Host: {settings.FASTAPI_HOST}")
    print(f"  FastAPI Port: {settings.FASTAPI_PORT}")
    print(f"  Debug Mode: {settings.DEBUG_MODE}")
    print(f"  Supabase URL: {'Set' if settings.SUPABASE_URL else 'Not Set'}")
    print(f"  Supabase Key: {'Set' if settings.SUPABASE_KEY else 'Not Set'}")
    print(f"  Supabase Service Role Key: {'Set' if settings.SUPABASE_SERVICE_ROLE_KEY else 'Not Set'}")
    print(f"  Supabase DB Connection String: {'Set' if settings.SUPABASE_DB_CONN_STRING else 'Not Set'}")
    print(f"  Google API Key: {'Set' if settings.GOOGLE_API_KEY else 'Not Set'}")
    print(f"  LLM Model: {settings.LLM_MODEL_NAME}")
    print(f"  Currency Symbol: {settings.CURRENCY_SYMBOL}")
    print("--- End Configuration ---")
