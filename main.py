import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import database
from database import db, ensure_indexes, now

import account
import admin
import auth
import billing
import catalog
import clients
import orders

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is None:
        logger.warning("No database configured, set DATABASE_URL or AZURE_COSMOS_CONNECTION_STRING")
    else:
        ensure_indexes()
        logger.info("Connected to %s (%s)", database.database_type, config.DATABASE_NAME)
    yield


app = FastAPI(title="Caper Sports API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, catalog, account, orders, admin, billing, clients):
    app.include_router(module.router)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


# Routes
@app.get("/")
def read_root():
    return {"message": "Caper Sports API"}


@app.get("/api/health")
def health():
    status = "Not Connected"
    if db is not None:
        try:
            db.command("ping")
            status = "Connected"
        except Exception as e:
            status = f"Error: {str(e)[:80]}"
    return {
        "status": "OK",
        "message": "Caper Sports API is running",
        "timestamp": now().isoformat(),
        "services": {"database": {"type": database.database_type, "status": status}},
    }


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_type": database.database_type,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            response["database_name"] = db.name
            response["collections"] = db.list_collection_names()
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
