"""Shared pydantic base for API schemas."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base schema whose JSON keys are camelCase (`collectionId`, `createdAt`).

    Request bodies accept both camelCase and snake_case keys; unknown keys are
    ignored. Responses are serialized by alias.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


class MessageResponse(CamelModel):
    """Acknowledgement with a human-readable message."""

    message: str


class ErrorResponse(CamelModel):
    """Body of every error response."""

    error: str
