# shopcore/main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from shopcore.api import create_app
from shopcore.data.database import init_db
from shopcore.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database initialised")
    yield


app = create_app(lifespan=lifespan)

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
