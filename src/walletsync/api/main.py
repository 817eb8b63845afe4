import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from walletsync.api.account import router as account_router
from walletsync.api.balances import router as balances_router
from walletsync.api.sync import router as sync_router
from walletsync.api.transactions import router as transactions_router
from walletsync.container import Container
from walletsync.exceptions import StorageError

logger = logging.getLogger("walletsync.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = Container()
    app.state.container = container
    await container.storage().create_schema()
    yield
    await container.http_client().close()
    engine = container.engine()
    await engine.dispose()


app = FastAPI(title="walletsync", version="0.1.0", lifespan=lifespan)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled error on %s %s:\n%s", request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sync_router)
app.include_router(transactions_router)
app.include_router(balances_router)
app.include_router(account_router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}
