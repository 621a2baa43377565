"""Response envelope for list endpoints.

Queue lists, history and saved entries all return
    {"items": [...], "total": <int>}
"""

from typing import Optional


def list_response(items: list, total: Optional[int] = None) -> dict:
    """Wrap serialized items; ``total`` defaults to ``len(items)``."""
    return {
        "items": items,
        "total": total if total is not None else len(items),
    }
