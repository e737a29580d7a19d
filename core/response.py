"""
Standardized API response envelopes
"""
from typing import Any, Dict, Optional
from datetime import datetime

from fastapi.encoders import jsonable_encoder


def success_response(
    data: Any = None,
    message: str = "Operation successful",
    meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create a success response"""
    return {
        "success": True,
        "message": message,
        "data": jsonable_encoder(data),
        "meta": meta,
        "timestamp": datetime.utcnow().isoformat()
    }


def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create an error response"""
    return {
        "success": False,
        "message": message,
        "error_code": error_code,
        "details": jsonable_encoder(details),
        "timestamp": datetime.utcnow().isoformat()
    }


def paginated_meta(page: int, per_page: int, total_items: int) -> Dict[str, Any]:
    """Pagination block for the meta field of a success response"""
    total_pages = (total_items + per_page - 1) // per_page

    return {
        "page": page,
        "per_page": per_page,
        "total_items": total_items,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }
