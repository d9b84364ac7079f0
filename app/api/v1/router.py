from fastapi import APIRouter

from app.api.v1.endpoints import assessments, exports, mastery, mastery_setup, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["User"])
api_router.include_router(mastery.router, prefix="/mastery", tags=["Mastery"])
api_router.include_router(mastery_setup.router, prefix="/mastery", tags=["Mastery Setup"])
api_router.include_router(assessments.router, prefix="/assessments", tags=["Assessments"])
api_router.include_router(exports.router, prefix="", tags=["Exports"])

__all__ = ["api_router"]
