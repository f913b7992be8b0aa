from pydantic import BaseModel, ConfigDict


class UserRef(BaseModel):
    """Resolved user reference: the minimal identity attributes.

    Built from rows the identity owner has already accepted, so fields are
    carried as stored and never re-validated here.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    is_active: bool = True
