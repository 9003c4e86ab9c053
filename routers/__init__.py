"""
API Routers for the follow-up diagnosis service
"""

from .followup import router as followup_router
from .workbook import router as workbook_router
from .worksheets import router as worksheets_router

__all__ = ["followup_router", "workbook_router", "worksheets_router"]
