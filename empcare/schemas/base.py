"""
schemas/base.py
---------------
Shared pydantic base: camelCase keys on the wire, snake_case attributes in
Python, and construction from ORM objects.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
