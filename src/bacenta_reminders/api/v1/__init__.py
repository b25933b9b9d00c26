from fastapi import APIRouter

from .endpoints import birthdays, health

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(birthdays.router)
