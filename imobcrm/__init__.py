"""IMOB CRM - backend da imobiliária (FastAPI + MongoDB)"""

__version__ = "1.0.0"
