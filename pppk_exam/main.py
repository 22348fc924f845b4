# pppk_exam/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pppk_exam.api.v1.api import api_router
from pppk_exam.core.config import settings
from pppk_exam.core.logging_config import setup_logging
from pppk_exam.db.init_db import init_db

setup_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    init_db()


app.include_router(api_router, prefix="/api/v1")
