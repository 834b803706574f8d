"""
Renderer-specific payloads.

Every block stores its `data` as JSON, but writes go through exactly one
variant model per renderer. Unknown keys are kept so editors can carry
presentation extras without a schema change.
"""
from typing import Any, Dict, List, Literal, Optional, Type, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from linkblocks.domain.exceptions import ValidationError
from linkblocks.utils.text import (
    plain_text,
    reading_time_minutes,
    sanitize_html,
    word_count,
)

ALLOWED_URL_SCHEMES = {"http", "https", "mailto", "tel"}
REDIRECT_STATUS_CODES = {301, 302, 307, 308}


def normalize_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("URL cannot be empty")

    parsed = urlparse(value)
    if not parsed.scheme:
        parsed = urlparse(f"https://{value}")

    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ValueError(f"Unsupported URL scheme: {parsed.scheme}")

    if parsed.scheme in ("http", "https") and not parsed.netloc:
        raise ValueError("URL must include a host")

    return parsed.geturl()


class Payload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)


class RedirectData(Payload):
    url: str
    status_code: int = Field(default=301, alias="statusCode")

    @field_validator("url")
    @classmethod
    def _url(cls, value: str) -> str:
        return normalize_url(value)

    @field_validator("status_code")
    @classmethod
    def _status_code(cls, value: int) -> int:
        if value not in REDIRECT_STATUS_CODES:
            raise ValueError(f"Redirect status must be one of {sorted(REDIRECT_STATUS_CODES)}")
        return value


class ArticleData(Payload):
    title: str = Field(min_length=1)
    content: Union[List[Any], str] = Field(default_factory=list)
    excerpt: Optional[str] = None
    reading_time: int = 0
    word_count: int = 0

    @model_validator(mode="after")
    def _sanitize_and_measure(self):
        if isinstance(self.content, str):
            self.content = sanitize_html(self.content)
            text = plain_text(self.content)
        else:
            sanitized = []
            fragments = []
            for item in self.content:
                if isinstance(item, dict) and isinstance(item.get("content"), str):
                    item = {**item, "content": sanitize_html(item["content"])}
                    fragments.append(plain_text(item["content"]))
                sanitized.append(item)
            self.content = sanitized
            text = " ".join(fragments)

        self.word_count = word_count(text)
        self.reading_time = reading_time_minutes(self.word_count)
        return self


class ImageData(Payload):
    url: str
    alt: str = ""
    title: str = ""
    caption: Optional[str] = None
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)

    @field_validator("url")
    @classmethod
    def _url(cls, value: str) -> str:
        return normalize_url(value)


class CardData(Payload):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    icon: Optional[str] = None

    @field_validator("url", "image_url")
    @classmethod
    def _optional_url(cls, value: Optional[str]) -> Optional[str]:
        return normalize_url(value) if value else value


class GalleryData(Payload):
    images: List[ImageData] = Field(default_factory=list)
    layout: Literal["grid", "masonry", "carousel"] = "grid"


class PageData(Payload):
    title: Optional[str] = None
    description: Optional[str] = None
    theme: Optional[str] = None


class HeadingData(Payload):
    text: str = Field(min_length=1)
    level: int = Field(default=2, ge=1, le=6)


class TextData(Payload):
    content: str = ""

    @field_validator("content")
    @classmethod
    def _sanitize(cls, value: str) -> str:
        return sanitize_html(value)


PAYLOAD_MODELS: Dict[str, Type[Payload]] = {
    "redirect": RedirectData,
    "article": ArticleData,
    "image": ImageData,
    "card": CardData,
    "gallery": GalleryData,
    "page": PageData,
    "heading": HeadingData,
    "text": TextData,
}


def payload_model(renderer: str) -> Type[Payload]:
    try:
        return PAYLOAD_MODELS[renderer]
    except KeyError:
        raise ValidationError(
            f"Unknown renderer: {renderer}",
            code="unknown_renderer",
            details={"renderer": renderer, "allowed": sorted(PAYLOAD_MODELS)},
        ) from None


def process_payload(renderer: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validates `data` against the renderer's variant and returns the stored form.
    """
    model = payload_model(renderer)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"{renderer} data must be an object", code="invalid_payload")

    try:
        parsed = model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {renderer} data",
            code="invalid_payload",
            details={
                "errors": [
                    {
                        "loc": [str(part) for part in err["loc"]],
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                    for err in exc.errors()
                ]
            },
        ) from exc

    return parsed.model_dump(mode="json")


def merge_payload(renderer: str, existing: Optional[Dict[str, Any]], changes: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(existing or {})
    merged.update(changes)
    return process_payload(renderer, merged)
