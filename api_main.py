# api_main.py
import logging
import os
from typing import Optional
import uvicorn

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import create_client, Client as SupabaseClient

from config import settings
from routers import (auth_router, transactions_router, recurring_router, budgets_router, insights_router,
                     planning_router, reports_router, ai_router)


# --- Configure Logging ---
log = logging.getLogger('fastapi_app')
log.setLevel(logging.INFO if not settings.DEBUG_MODE else logging.DEBUG)
if not log.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - [%(name)s:%(module)s:%(funcName)s:%(lineno)d] - %(message)s')
    handler.setFormatter(formatter)
    log.addHandler(handler)


def create_supabase_client() -> Optional[SupabaseClient]:
    """Returns a client when both URL and key are configured, otherwise None."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        log.critical("Supabase URL or Key not found in settings. Auth operations will fail.")
        return None
    try:
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        log.info("Supabase client initialized.")
        return client
    except Exception as e:
        log.critical(f"Failed to initialize Supabase client: {e}", exc_info=True)
        return None


app = FastAPI(
    title=settings.APP_NAME,
    description="Cash-flow, budgeting and planning API for small enterprises.",
    version="0.1.0"
)
app.state.supabase_client = create_supabase_client()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
log.info(f"CORS origins: {settings.CORS_ORIGINS}")

for _router in (auth_router, transactions_router, recurring_router, budgets_router, insights_router,
                planning_router, reports_router, ai_router):
    app.include_router(_router.router)


@app.get("/", tags=["General"])
async def read_root():
    return {"message": f"Welcome to {settings.APP_NAME}", "currency": settings.CURRENCY_SYMBOL}


if __name__ == "__main__":
    log.info(f"Starting {settings.APP_NAME} (Debug: {settings.DEBUG_MODE})...")
    uvicorn.run(
        "api_main:app",
        host=settings.FASTAPI_HOST,
        port=settings.FASTAPI_PORT,
        reload=settings.DEBUG_MODE,
        reload_dirs=[
            os.path.dirname(os.path.abspath(__file__)),
            "routers",
            "auth"
        ]
    )
