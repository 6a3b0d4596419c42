from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: snake_case attributes, camelCase keys over the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
