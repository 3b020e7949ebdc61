"""
Lhyst Functions API
Sign-up verification, feedback relay and Stripe checkout for the Lhyst logbook.
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lhyst.api.routes import auth, billing, support
from lhyst.core import config
from lhyst.core.errors import LhystError, ValidationError

# Serverless/container platforms capture stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Lhyst Functions")


@app.exception_handler(LhystError)
async def lhyst_error_handler(request: Request, exc: LhystError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed JSON or wrongly typed fields are client errors, reported like missing fields
    error = ValidationError("Invalid request body")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s error: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Paths match the former Netlify function names
app.include_router(auth.router, tags=["Verification"])
app.include_router(support.router, tags=["Support"])
app.include_router(billing.router, tags=["Billing"])


@app.get("/")
def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.port())
