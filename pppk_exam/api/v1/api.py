# pppk_exam/api/v1/api.py
from fastapi import APIRouter

from pppk_exam.api.v1.endpoints import dashboard, exam, health

api_router = APIRouter()
api_router.include_router(exam.router)
api_router.include_router(dashboard.router)
api_router.include_router(health.router)
