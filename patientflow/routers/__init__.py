# Routers package
from . import auth_router
from . import patients_router
from . import appointments_router
from . import consultations_router
from . import doctors_router
from . import notifications_router
from . import prescriptions_router
from . import admin_router

__all__ = [
    "auth_router",
    "patients_router",
    "appointments_router",
    "consultations_router",
    "doctors_router",
    "notifications_router",
    "prescriptions_router",
    "admin_router",
]
