"""
Node and edge models for one map's graph.

Field names mirror the stored documents (``isChoice``, ``parentId``,
``createdAt``), with snake_case attribute names for Python callers.
``selected`` is local UI state only and is never written to the store.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mapdiary.config import DEFAULT_NODE_TYPE, UNTITLED_LABEL


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


class NodeData(BaseModel):
    """Nested ``data`` block of a node document."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    label: str | None = None
    content: str | None = None
    preview: str | None = None
    is_choice: bool = Field(default=False, alias="isChoice")
    parent_id: str | None = Field(default=None, alias="parentId")


class Node(BaseModel):
    """One graph vertex as rendered to the UI."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    label: str | None = None
    content: str | None = None
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)
    hidden: bool | None = False
    type: str = DEFAULT_NODE_TYPE
    created_at: Any = Field(default=None, alias="createdAt")

    # Local only
    selected: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Node:
        return cls.model_validate(record)

    @property
    def visible(self) -> bool:
        return not self.hidden

    @property
    def display_label(self) -> str:
        return self.label or self.data.label or UNTITLED_LABEL

    @property
    def is_choice(self) -> bool:
        return self.data.is_choice

    @property
    def choice_parent_id(self) -> str | None:
        return self.data.parent_id


class Edge(BaseModel):
    """A directed connection source -> target. ``id`` is the store id."""

    model_config = ConfigDict(extra="ignore")

    id: str
    source: str
    target: str

    # Local only
    selected: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Edge:
        return cls.model_validate(record)


def edge_id_for(source: str, target: str) -> str:
    """Conventional edge id; the id the store holds stays authoritative."""
    return f"e{source}-{target}"


def node_document(
    label: str,
    position: Position,
    *,
    content: str | None = None,
    is_choice: bool = False,
    parent_id: str | None = None,
    hidden: bool = False,
    created_at: Any = None,
) -> dict[str, Any]:
    """Build the stored shape of a new node."""
    data: dict[str, Any] = {"label": label}
    if is_choice:
        data["isChoice"] = True
        data["parentId"] = parent_id
    doc: dict[str, Any] = {
        "label": label,
        "position": position.to_dict(),
        "data": data,
        "type": DEFAULT_NODE_TYPE,
        "createdAt": created_at,
    }
    if content is not None:
        doc["content"] = content
    if hidden:
        doc["hidden"] = True
    return doc


def edge_document(source: str, target: str) -> dict[str, Any]:
    return {"source": source, "target": target, "id": edge_id_for(source, target)}
