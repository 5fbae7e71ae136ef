"""Validation of raw request bodies inside the service layer."""
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

import pydantic

from services.exceptions import ValidationError

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)

# Location prefixes FastAPI adds that mean nothing to the client
_IGNORED_LOC_PARTS = ("body", "query", "path")


def format_errors(errors: Iterable[Mapping[str, Any]]) -> str:
    """Flatten pydantic errors into one readable message, e.g. 'username: too short'."""
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in _IGNORED_LOC_PARTS]
        msg = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(messages) or "Invalid request"


def parse_payload(schema: type[SchemaT], payload: Any) -> SchemaT:  # noqa: ANN401
    """
    Validate a request body against `schema`.

    Update endpoints take the body unparsed so the target row can be loaded
    and its owner checked first; this runs afterwards. Already-parsed
    instances pass through.

    Raises:
        ValidationError: If the body does not fit the schema.
    """
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(format_errors(e.errors())) from e
