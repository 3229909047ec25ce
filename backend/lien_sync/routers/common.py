"""Shared base for request/response models"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Rendered in camelCase for the dashboard.

    Accepts camelCase or snake_case keys, and ORM objects by attribute name.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
