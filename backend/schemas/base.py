# backend/schemas/base.py
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Request bodies arrive camelCased from the web client; snake_case is accepted too
class RequestBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
