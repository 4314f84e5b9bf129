from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

DEFAULT_JPEG_QUALITY = 80


class RenderOptions(BaseModel):
    """Screenshot parameters for one render, with defaults applied."""
    width: int = Field(
        default=1920,
        description="Viewport width in pixels",
        gt=0,
        strict=True,
    )
    height: int = Field(
        default=1080,
        description="Viewport height in pixels",
        gt=0,
        strict=True,
    )
    device_scale_factor: float = Field(
        default=1.0,
        description="Device scale factor (pixel ratio)",
        gt=0,
        strict=True,
        validation_alias=AliasChoices("deviceScaleFactor", "device_scale_factor"),
    )
    timeout_ms: int = Field(
        default=30000,
        description="Maximum time to wait for the page to become network idle, in milliseconds",
        gt=0,
        strict=True,
        validation_alias=AliasChoices("timeoutMs", "timeout_ms", "timeout"),
    )
    format: Literal["png", "jpeg"] = Field(
        default="png",
        description="Image format (png, jpeg)",
    )
    full_page: bool = Field(
        default=False,
        description="Capture the full scrollable page instead of the viewport",
        strict=True,
        validation_alias=AliasChoices("fullPage", "full_page"),
    )
    quality: Optional[int] = Field(
        default=None,
        description="JPEG quality (1-100), only applicable when format is jpeg",
        ge=1,
        le=100,
        strict=True,
    )

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "width": 1920,
                "height": 1080,
                "deviceScaleFactor": 1,
                "timeoutMs": 30000,
                "format": "jpeg",
                "fullPage": False,
                "quality": 80
            }
        }
    )

    @model_validator(mode="after")
    def apply_quality_default(self):
        """Default jpeg quality to 80 and drop quality for png."""
        if self.format == "jpeg":
            if self.quality is None:
                object.__setattr__(self, "quality", DEFAULT_JPEG_QUALITY)
        elif self.quality is not None:
            object.__setattr__(self, "quality", None)
        return self

    @property
    def mime_type(self) -> str:
        return f"image/{self.format}"


class RenderRequest(BaseModel):
    """A validated render call: the target URL plus its options."""
    url: str = Field(..., min_length=1, description="URL of the page to render")
    options: RenderOptions = Field(default_factory=RenderOptions)

    model_config = ConfigDict(frozen=True)


class ErrorResponse(BaseModel):
    """Body returned for every failed render."""
    error: str = Field(..., description="Human readable error message")

    model_config = {
        "json_schema_extra": {
            "example": {"error": "URL is required"}
        }
    }
