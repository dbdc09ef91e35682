"""Options accepted by the critical CSS generator."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from critical.core.config import settings


class Dimension(BaseModel):
    """Viewport size used for one critical path computation."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class IgnoreOptions(BaseModel):
    """Controls which parts of a rule an ignore entry is matched against."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_selectors: bool = Field(default=True, alias="matchSelectors")
    match_types: bool = Field(default=True, alias="matchTypes")
    match_declaration_properties: bool = Field(default=True, alias="matchDeclarationProperties")
    match_declaration_values: bool = Field(default=True, alias="matchDeclarationValues")
    match_media: bool = Field(default=True, alias="matchMedia")


IgnoreRule = Union[str, re.Pattern]


class GenerateOptions(BaseModel):
    """Immutable configuration for one generation run.

    Field aliases follow the camelCase names used by API payloads, so both
    ``GenerateOptions(inlineImages=True)`` and
    ``GenerateOptions(inline_images=True)`` are accepted.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    src: Optional[str] = Field(default=None, description="Path or URL of the HTML document.")
    html: Optional[str] = Field(default=None, description="Literal HTML content.")
    base: Optional[str] = Field(default=None, description="Base directory for relative lookups.")

    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    dimensions: List[Dimension] = Field(default_factory=list, validate_default=True)

    css: List[str] = Field(default_factory=list, description="Explicit stylesheets, bypasses discovery.")

    inline_images: bool = Field(default=False, alias="inlineImages")
    max_image_file_size: int = Field(
        default_factory=lambda: settings.max_image_file_size,
        alias="maxImageFileSize",
        ge=0,
    )
    asset_paths: List[str] = Field(default_factory=list, alias="assetPaths")

    ignore: List[IgnoreRule] = Field(default_factory=list)
    ignore_options: IgnoreOptions = Field(default_factory=IgnoreOptions, alias="ignoreOptions")

    user: Optional[str] = None
    password: Optional[str] = Field(default=None, alias="pass")
    user_agent: Optional[str] = Field(default=None, alias="userAgent")

    penthouse: Dict[str, Any] = Field(
        default_factory=dict,
        description="Configuration forwarded verbatim to the rendering engine.",
    )

    @field_validator("css", "asset_paths", "ignore", mode="before")
    @classmethod
    def listify(cls, value: Any) -> Any:
        """Accept a single entry wherever a list is expected."""

        if value is None:
            return []
        if isinstance(value, (str, re.Pattern)):
            return [value]
        return value

    @field_validator("dimensions")
    @classmethod
    def default_dimensions(cls, value: List[Dimension], info: ValidationInfo) -> List[Dimension]:
        """Fall back to the single width/height pair when no list was given."""

        if value:
            return value
        return [
            Dimension(
                width=info.data.get("width") or settings.default_width,
                height=info.data.get("height") or settings.default_height,
            )
        ]

    @property
    def has_source(self) -> bool:
        return bool(self.src or self.html)

    @property
    def credentials(self) -> Optional[tuple[str, str]]:
        if self.user and self.password:
            return self.user, self.password
        return None
