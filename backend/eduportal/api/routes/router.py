from fastapi import APIRouter
from eduportal.api.routes import auth, portal, provisioning, school, standalone_admin, subscription

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/portal/auth", tags=["auth"])
api_router.include_router(portal.router, prefix="/portal", tags=["portal"])
api_router.include_router(school.router, prefix="/school", tags=["school"])
api_router.include_router(provisioning.router, prefix="/provisioning", tags=["provisioning"])
api_router.include_router(standalone_admin.router, prefix="/standalone-admin", tags=["standalone-admin"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
