from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from common.log_handler import log
from database.utils import create_tables
from api.rate_limiter import limiter, rate_limit_exceeded_handler
import os


load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Creating database tables if they do not exist")
    await create_tables()
    yield


if os.getenv("DEV", "FALSE").upper() == "TRUE":
    app = FastAPI(debug=True, title="TOTP backend DEVELOPMENT", lifespan=lifespan)
    log.warning("Starting **development** server")
else:
    app = FastAPI(title="TOTP backend", lifespan=lifespan, openapi_url=None, docs_url=None, redoc_url=None)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
from api import router as api_router
app.include_router(api_router)

allowed_origins = [origin.strip() for origin in os.getenv("FRONTEND_URL", "").split(",") if origin.strip()]
if os.getenv("DEV", "FALSE").upper() == "TRUE":
    allowed_origins += ["http://localhost:3000", "http://localhost:5000", "http://localhost:8000"]
    log.warning("CORS allowed origins set for development")

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )
else:
    log.warning("FRONTEND_URL is not set, cross-origin requests will be refused")


if __name__ == "__main__":
    import uvicorn

    log.warning("Starting development server")
    uvicorn.run("main:app", host="0.0.0.0", port=8001, reload=True)
