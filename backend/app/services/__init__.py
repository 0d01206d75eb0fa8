# backend/app/services/__init__.py
from .progress_service import ProgressService
