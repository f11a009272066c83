"""
Shared base schema: snake_case in Python, camelCase on the wire
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every request/response body"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Notice(WireModel):
    """A non-blocking, user-visible message (rendered as a toast)"""
    title: str
    message: str
    level: str = "info"  # info, warning


class MessageResponse(WireModel):
    message: str
