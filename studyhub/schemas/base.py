"""Base schema configuration."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for every API schema.

    Rows come back from the data service as plain mappings, so models are
    built with model_validate(row); unknown columns are ignored, which keeps
    responses stable when the live schema carries extra fields.
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        str_strip_whitespace=True,
    )
