from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

from socialgraph.core.exceptions import ValidationFailed

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_input(schema: Type[SchemaT], **data) -> SchemaT:
    """Validate service input against ``schema`` before any write happens."""
    try:
        return schema(**data)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ValidationFailed(f"{field}: {error['msg']}" if field else error["msg"], field=field) from e
