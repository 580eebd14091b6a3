from fastapi import APIRouter

from timeharbor.api.v1.endpoints import clock, tickets, reports

api_router = APIRouter()
api_router.include_router(clock.router, prefix="/clock", tags=["clock"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
