from typing import Any, Optional


class SocialGraphError(Exception):
    """Base class for errors raised by the social graph services.

    ``status_code`` is the HTTP status a transport layer should map the
    error to.
    """

    status_code: int = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(SocialGraphError):
    """A referenced entity id does not resolve."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class DuplicatePair(SocialGraphError):
    """An ordered relationship pair already exists."""

    status_code = 409

    def __init__(self, relation: str, source_id: Any, target_id: Any):
        super().__init__(f"{relation} {source_id} -> {target_id} already exists")
        self.relation = relation
        self.source_id = source_id
        self.target_id = target_id


class ValidationFailed(SocialGraphError):
    """A field is blank, oversized or otherwise malformed."""

    status_code = 422

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail)
        self.field = field


class ConstraintViolation(SocialGraphError):
    """The store rejected a write for a reason not classified above."""

    status_code = 409
