from fastapi import APIRouter

from siteflow.api.v1 import scans, reports

api_router = APIRouter(prefix="/v1")

api_router.include_router(scans.router, prefix="/scans", tags=["Scans"])
api_router.include_router(reports.router, prefix="/reports", tags=["Reports"])
