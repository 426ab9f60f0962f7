### deliverydesk/main.py
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
import logging

from deliverydesk.api import delivery
from deliverydesk.auth.dependencies import get_current_user
from deliverydesk.core.config import settings
from deliverydesk.db import create_db_and_tables
import deliverydesk.models  # registers all models via models/__init__.py
from sqlalchemy.orm import configure_mappers
configure_mappers()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Create the FastAPI app
app = FastAPI(
    title="Delivery Desk API",
    version="1.0.0",
    description="Proof of delivery capture, reconciliation and Shopify fulfillment.",
)

# ✅ Session middleware (driver/admin sessions are issued elsewhere)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)

# ✅ Allow frontend dev (CORS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In prod, restrict this!
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/whoami")
async def whoami(user=Depends(get_current_user)):
    return {"id": user.id, "name": user.name, "role": user.role}


@app.on_event("startup")
async def on_startup():
    log.info("Starting DB setup...")
    await create_db_and_tables()
    log.info("DB schema ready.")


# ✅ Core app routers
app.include_router(delivery.router)
