# Schemas package (re-export feature modules for stable imports)
from .auth.auth import *
from .patients.patient import *
from .appointments.appointment import *
from .consultations.consultation import *
from .doctors.doctor import *
from .common.common import *
