from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import AtollModelValidationError
from .links import find_link_uri_by_rel

T = TypeVar("T", bound=BaseModel)


class Link(BaseModel):
    rel: str
    uri: str

    model_config = ConfigDict(extra="ignore")


class ApiMapItem(BaseModel):
    id: str
    links: List[Link] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class AuthTokens(BaseModel):
    auth_token: str = Field(alias="authToken")
    refresh_token: str = Field(alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BaseResourceItem(BaseModel):
    """
    Base model for Atoll resource items.
    Every item carries its own links list for relation-based navigation.
    """

    id: str
    links: List[Link] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def link_uri(self, rel: str) -> Optional[str]:
        return find_link_uri_by_rel(self.links, rel)


class ProjectResourceItem(BaseResourceItem):
    name: str
    description: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class SprintResourceItem(BaseResourceItem):
    name: str
    display_index: Optional[int] = Field(default=None, alias="displayIndex")
    start_date: Optional[str] = Field(default=None, alias="startdate")
    finish_date: Optional[str] = Field(default=None, alias="finishdate")
    planned_points: Optional[float] = Field(default=None, alias="plannedPoints")
    accepted_points: Optional[float] = Field(default=None, alias="acceptedPoints")
    total_points: Optional[float] = Field(default=None, alias="totalPoints")
    archived: bool = False


class SprintBacklogItemResourceItem(BaseResourceItem):
    friendly_id: Optional[str] = Field(default=None, alias="friendlyId")
    external_id: Optional[str] = Field(default=None, alias="externalId")
    story_phrase: Optional[str] = Field(default=None, alias="storyPhrase")
    type: Optional[str] = None
    status: Optional[str] = None
    estimate: Optional[float] = None
    display_index: Optional[int] = Field(default=None, alias="displayIndex")


# --- Response envelopes ---


def envelope_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise AtollModelValidationError(
            "Expected response envelope with a 'data' object."
        )
    return data


def envelope_item(payload: Dict[str, Any], model: Type[T]) -> T:
    """Validate `data.item` of an Atoll response envelope as `model`."""
    item = envelope_data(payload).get("item")
    try:
        return model.model_validate(item)
    except ValidationError as exc:
        raise AtollModelValidationError(
            f"Response item did not match model {model.__name__}: {exc}"
        ) from exc


def envelope_items(payload: Dict[str, Any], model: Type[T]) -> List[T]:
    """Validate `data.items` of an Atoll response envelope as a list of `model`."""
    items = envelope_data(payload).get("items")
    if not isinstance(items, list):
        raise AtollModelValidationError("Expected data.items to be a list.")
    try:
        return [model.model_validate(i) for i in items]
    except ValidationError as exc:
        raise AtollModelValidationError(
            f"Response items did not match model {model.__name__}: {exc}"
        ) from exc


__all__ = [
    "Link",
    "ApiMapItem",
    "AuthTokens",
    "BaseResourceItem",
    "ProjectResourceItem",
    "SprintResourceItem",
    "SprintBacklogItemResourceItem",
    "envelope_data",
    "envelope_item",
    "envelope_items",
]
