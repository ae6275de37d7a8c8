"""API Routes."""

from fastapi import APIRouter

from .admin import router as admin_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .blog import router as blog_router
from .checkout import router as checkout_router
from .health import router as health_router
from .plans import router as plans_router
from .reminders import router as reminders_router
from .subscriber import router as subscriber_router
from .webhooks import router as webhooks_router

# Create main API router
api_router = APIRouter()

# Include route modules
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(auth_router)
api_router.include_router(plans_router)
api_router.include_router(checkout_router)
api_router.include_router(subscriber_router)
api_router.include_router(reminders_router)
api_router.include_router(analytics_router)
api_router.include_router(webhooks_router)
api_router.include_router(admin_router)
api_router.include_router(blog_router)
