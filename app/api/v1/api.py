# Router aggregator
from fastapi import APIRouter

from app.api.v1.endpoints.auth import auth_router
from app.api.v1.endpoints.chat import community_chat_router
from app.api.v1.endpoints.community import community_router
from app.api.v1.endpoints.instructors import instructor_router
from app.api.v1.endpoints.material_upload import class_note_router
from app.api.v1.endpoints.material_upload import past_exam_router
from app.api.v1.endpoints.reference import reference_router
from app.api.v1.endpoints.users import user_router

api_router = APIRouter()

api_router.include_router(auth_router.router)
api_router.include_router(reference_router.router)
api_router.include_router(past_exam_router.router)
api_router.include_router(class_note_router.router)
api_router.include_router(community_router.router)
api_router.include_router(community_chat_router.router)
api_router.include_router(user_router.router)
api_router.include_router(instructor_router.router)
