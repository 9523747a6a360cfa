import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.api.accounts import router as accounts_router
from app.api.runs import router as runs_router
from app.api.routes import router as routes_router
from app.api.pace import router as pace_router
from app.core.errors import RunLifecycleError
from app.db import Base, engine
from app.models.account import Account  # noqa: F401  (import ensures table is registered)
from app.models.active_run import ActiveRun  # noqa: F401
from app.models.historical_run import HistoricalRun  # noqa: F401


logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Running Late backend")

# Allow CORS for the mobile/web client
origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create DB tables (accounts, runs) on startup
Base.metadata.create_all(bind=engine)


# Every failure goes back to the client as {"error": "..."}
@app.exception_handler(RunLifecycleError)
def lifecycle_error_handler(request: Request, exc: RunLifecycleError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=422, content={"error": "; ".join(parts) or "Invalid request"})


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(accounts_router)
app.include_router(runs_router)
app.include_router(routes_router)
app.include_router(pace_router)


@app.get("/")
def root():
    return {"message": "Running Late backend is running"}
