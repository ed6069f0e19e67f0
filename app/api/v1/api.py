from fastapi import APIRouter
from app.api.v1.routes.events import router as events_router
from app.api.v1.routes.organizers import router as organizers_router
from app.api.v1.routes.tickets import router as tickets_router
from app.api.v1.routes.bookings import router as bookings_router
from app.api.v1.routes.payments import router as payments_router
from app.api.v1.routes.notifications import router as notifications_router
from app.api.v1.routes.location import router as location_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events_router)
api_router.include_router(organizers_router)
api_router.include_router(tickets_router)
api_router.include_router(bookings_router)
api_router.include_router(payments_router)
api_router.include_router(notifications_router)
api_router.include_router(location_router)
