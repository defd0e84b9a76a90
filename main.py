from contextlib import asynccontextmanager
from models.database import init_db
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import time
import uvicorn
import config
from routes import users, teams, pull_request, stats
from routes.errors import error_detail


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("database schema ready")

    yield


app = FastAPI(title="PR Reviewer Assignment Service", lifespan=lifespan)

app.include_router(users.router)
app.include_router(teams.router)
app.include_router(pull_request.router)
app.include_router(stats.router)


@app.middleware("http")
async def access_log(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": error_detail("BAD_REQUEST", "invalid request body")}
    )


@app.get("/health", status_code=status.HTTP_200_OK)
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host=config.HOST, port=config.PORT)
