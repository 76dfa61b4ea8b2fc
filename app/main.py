from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.config import get_settings
from app.database import Base, engine
from app.exceptions import register_exception_handlers
from app.observability import ObservabilityMiddleware, configure_logging
from app.parcel_routes import router as parcel_router
from app.routes import router as payment_router
from app.user_routes import router as user_router

configure_logging(get_settings().log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Zap Shift Parcel Delivery API", lifespan=lifespan)

app.add_middleware(ObservabilityMiddleware)
register_exception_handlers(app)

app.include_router(parcel_router)
app.include_router(payment_router)
app.include_router(user_router)


@app.get("/", response_class=PlainTextResponse)
def root():
    return "zap shift server is running!"


@app.get("/health")
def health():
    return {"status": "healthy"}
