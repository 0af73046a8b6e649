"""
Main FastAPI application
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from pricebook.config import get_settings
from pricebook.database import engine, Base, AsyncSessionLocal
from pricebook.models import Customer, Product, Supplier
from pricebook.services.errors import InvalidPrice, PriceListError
from pricebook.api import price_lists, prices
from pricebook.utils.logger import configure_logging, get_logger

settings = get_settings()
configure_logging()
logger = get_logger(__name__)


async def seed_demo_registries() -> None:
    """Suppliers, customers and products for a fresh demo database."""
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(Supplier))
        if existing.scalars().first():
            return

        session.add_all([
            Supplier(id="S1", name="Agro Meat", legal_name="Agro Meat LLC"),
            Supplier(id="S2", name="Belaya Ferma", legal_name="Belaya Ferma JSC"),
            Supplier(id="S3", name="Cold Chain Trade"),
        ])
        session.add_all([
            Customer(id="C1", name="Restaurant Prime"),
            Customer(id="C2", name="Market 24"),
        ])
        product_data = [
            ("P100", "Beef tenderloin", "beef", "kg"),
            ("P101", "Beef brisket", "beef", "kg"),
            ("P200", "Pork neck", "pork", "kg"),
            ("P201", "Pork ribs", "pork", "kg"),
            ("P300", "Chicken breast fillet", "poultry", "kg"),
            ("P301", "Chicken thigh", "poultry", "kg"),
            ("P400", "Lamb leg", "lamb", "kg"),
        ]
        for pid, name, category, unit in product_data:
            session.add(Product(id=pid, name=name, category=category, unit=unit, is_active=True))
        await session.commit()
        logger.info(f"Seeded demo registries ({len(product_data)} products)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    if settings.SEED_DEMO_DATA:
        await seed_demo_registries()

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PriceListError)
async def price_list_error_handler(request: Request, exc: PriceListError):
    """Domain errors become {"detail": ..., "error": ...} with the class's status code"""
    content = {"detail": exc.message, "error": type(exc).__name__}
    if isinstance(exc, InvalidPrice) and exc.product_ids:
        content["product_ids"] = exc.product_ids
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}")
    return JSONResponse(status_code=exc.status_code, content=content)


# Include routers
app.include_router(price_lists.router, prefix="/api/price-lists", tags=["Price Lists"])
app.include_router(prices.router, prefix="/api/prices", tags=["Prices"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pricebook.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
