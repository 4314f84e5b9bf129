from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from url2img.core.errors import ValidationError
from url2img.schemas.render import RenderOptions, RenderRequest


def normalize(raw: Mapping[str, Any]) -> RenderRequest:
    """Validate a raw render body and apply option defaults.

    ``raw`` is the flattened request body: ``url`` plus optional screenshot
    fields as sibling keys. Keys holding ``None`` count as unset and unknown
    keys are ignored.

    Args:
        raw: The decoded JSON body

    Returns:
        The validated, immutable render request

    Raises:
        ValidationError: If the url is missing or an option is out of range
    """
    url = raw.get("url")
    if not url or (isinstance(url, str) and not url.strip()):
        raise ValidationError("URL is required", field="url")
    if not isinstance(url, str):
        raise ValidationError("URL must be a string", field="url")

    values = {key: value for key, value in raw.items() if key != "url" and value is not None}
    try:
        options = RenderOptions.model_validate(values)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "options"
        raise ValidationError(
            f"Invalid value for '{field}': {error['msg']}",
            field=field,
            context={"error_count": e.error_count()}
        ) from e

    return RenderRequest(url=url.strip(), options=options)
