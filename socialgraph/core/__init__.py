from socialgraph.core.exceptions import (
    SocialGraphError, NotFound, DuplicatePair, ValidationFailed, ConstraintViolation
)
from socialgraph.core.pagination import PageRequest, Page, paginate

__all__ = [
    "SocialGraphError", "NotFound", "DuplicatePair", "ValidationFailed", "ConstraintViolation",
    "PageRequest", "Page", "paginate",
]
