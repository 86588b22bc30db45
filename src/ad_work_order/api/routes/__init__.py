"""
API 路由模块
"""

from .work_order import router as work_order_router
from .review import router as review_router
from .upload import router as upload_router

__all__ = ["work_order_router", "review_router", "upload_router"]
