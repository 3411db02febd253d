from fastapi import APIRouter

from hrops.api.governance import audit_router, month_close_router
from hrops.api.leave import leave_balances_router, leave_requests_router, leave_types_router
from hrops.api.timesheets import timesheets_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(leave_requests_router)
api_router.include_router(leave_balances_router)
api_router.include_router(timesheets_router)
api_router.include_router(month_close_router)
api_router.include_router(audit_router)
