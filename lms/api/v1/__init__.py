"""API v1 routes."""

from fastapi import APIRouter

from lms.api.v1 import courses, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(courses.router, prefix="/courses", tags=["Courses"])
