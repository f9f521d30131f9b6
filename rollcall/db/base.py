# /rollcall/db/base.py

# Central registry for all SQLAlchemy models. Importing them here ensures the
# Base metadata knows every table before `create_all` runs.

from .base_class import Base

from .models.ledger_models import User, ClassRoom, Student, AttendanceRecord
