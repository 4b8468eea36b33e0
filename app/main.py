import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# ----------------------------------------------------
# LOAD .ENV
# ----------------------------------------------------
load_dotenv(override=True)

from app.config import settings  # noqa: E402
from app.db import engine  # noqa: E402
from models import Base  # noqa: E402

# Routers
from routers import checkout, stripe_webhook  # noqa: E402
from routers import seller_earnings  # noqa: E402
from routers import payouts_admin, admin_settings, admin_orders  # noqa: E402

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

# ----------------------------------------------------
# FASTAPI APP
# ----------------------------------------------------
app = FastAPI(
    title="Marketplace Earnings Backend",
    version="1.0.0",
)

# ----------------------------------------------------
# CORS CONFIG
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.options("/{path:path}")
async def options_handler(path: str, request: Request):
    return Response(status_code=204)

# ----------------------------------------------------
# DB INIT (DEV ONLY, production schema comes from alembic)
# ----------------------------------------------------
if settings.env == "dev" and settings.db_auto_create:
    Base.metadata.create_all(bind=engine)

# ----------------------------------------------------
# ROUTERS
# ----------------------------------------------------
app.include_router(checkout.router)
app.include_router(stripe_webhook.router)

app.include_router(seller_earnings.router)

app.include_router(payouts_admin.router)
app.include_router(admin_settings.router)
app.include_router(admin_orders.router)


@app.get("/")
def root():
    return {"message": "Marketplace earnings backend up and running"}


@app.get("/health")
def health():
    return {"ok": True}
