"""
HTTP routes for the contest API, grouped by area and mounted on one router.
"""

from fastapi import APIRouter

from writory.routes import admin, coupons, notifications, public, submissions, users, wall

router = APIRouter()
router.include_router(users.router)
router.include_router(submissions.router)
router.include_router(coupons.router)
router.include_router(admin.router)
router.include_router(notifications.router)
router.include_router(wall.router)
router.include_router(public.router)
