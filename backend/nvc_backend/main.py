import logging
from typing import Dict

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .logging_config import configure_logging
from .profile_routes import get_profile_store, router as profile_router
from .profile_store import ProfileStore


configure_logging()
logger = logging.getLogger(__name__)
settings_snapshot = get_settings()

app = FastAPI(title="NVC Profile Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_snapshot.cors_origin_list or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(profile_router)

logger.info(
    "Backend starting; profile store configured: %s",
    ProfileStore.from_settings(settings_snapshot).is_configured(),
)


@app.get("/healthz")
def health(store: ProfileStore = Depends(get_profile_store)) -> Dict[str, str]:
    return {
        "status": "ok",
        "profile_store": "configured" if store.is_configured() else "not_configured",
    }
