from fastapi import APIRouter

from .endpoints import observability, redemptions, rewards, users

router = APIRouter()
router.include_router(rewards.router)
router.include_router(redemptions.router)
router.include_router(users.router)
router.include_router(observability.router)
