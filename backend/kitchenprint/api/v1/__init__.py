"""
API v1 Router - KitchenPrint
"""
from fastapi import APIRouter

from kitchenprint.api.v1.endpoints import dispatch, print_jobs, printers, stations

router = APIRouter()

# Printer configuration and connectivity tests
router.include_router(
    printers.router,
    prefix="/printers",
    tags=["printers"]
)

# Stations and their product categories
router.include_router(
    stations.router,
    prefix="/stations",
    tags=["stations"]
)

# Print job audit trail
router.include_router(
    print_jobs.router,
    prefix="/print-jobs",
    tags=["print-jobs"]
)

# Entry points for the order service
router.include_router(
    dispatch.router,
    prefix="/dispatch",
    tags=["dispatch"]
)
