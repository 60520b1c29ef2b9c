"""
Graph API endpoints for one map: nodes, edges, choices and brainstorming.

Every write stamps the map's updatedAt, so an edited map reads as needing a
new summary.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from mapdiary.api.dependencies import get_gateway, get_graph_store
from mapdiary.config import CHILD_NODE_LABEL, ROOT_NODE_LABEL
from mapdiary.errors import MapNotFoundError
from mapdiary.graph.editor import GraphEditor
from mapdiary.graph.models import Position
from mapdiary.graph.templates import choose_branch, reset_choices
from mapdiary.llm.gateway import AIGateway
from mapdiary.observability.logging import get_logger
from mapdiary.store.graph_store import GraphStore

router = APIRouter(prefix="/api/maps/{map_id}", tags=["graph"])
logger = get_logger(__name__)


def get_editor(
    map_id: str,
    graph_store: GraphStore = Depends(get_graph_store),
    gateway: AIGateway = Depends(get_gateway),
) -> GraphEditor:
    if graph_store.get_map(map_id) is None:
        raise MapNotFoundError(map_id)
    return GraphEditor(graph_store, map_id, gateway=gateway)


# ============================================================================
# Request/Response Models
# ============================================================================


class GraphResponse(BaseModel):
    map_id: str
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]


class CreateNodeRequest(BaseModel):
    label: str = Field(default=ROOT_NODE_LABEL, max_length=200)
    x: float = 0.0
    y: float = 0.0


class CreateChildrenRequest(BaseModel):
    """One child per label; a single default child when no labels are given."""

    labels: list[str] = Field(default_factory=lambda: [CHILD_NODE_LABEL], max_length=20)


class UpdateContentRequest(BaseModel):
    label: str = Field(max_length=200)
    content: str = ""


class MoveNodeRequest(BaseModel):
    x: float
    y: float


class ConnectRequest(BaseModel):
    source: str
    target: str


class NodeIdsResponse(BaseModel):
    node_ids: list[str]


class DeletionResponse(BaseModel):
    node_ids: list[str]
    edge_ids: list[str]


class EdgeResponse(BaseModel):
    id: str
    source: str
    target: str


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/graph", response_model=GraphResponse)
async def get_graph(
    map_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> GraphResponse:
    nodes, edges = editor.load_graph()
    return GraphResponse(
        map_id=map_id,
        nodes=[n.model_dump(by_alias=True, exclude={"selected"}) for n in nodes],
        edges=[e.model_dump(exclude={"selected"}) for e in edges],
    )


@router.post("/nodes", response_model=NodeIdsResponse, status_code=201)
async def create_node(
    request: CreateNodeRequest,
    editor: GraphEditor = Depends(get_editor),
) -> NodeIdsResponse:
    """Add a free-standing node, typically the first node of a blank map."""
    node_id = editor.add_node(request.label, Position(x=request.x, y=request.y))
    return NodeIdsResponse(node_ids=[node_id])


@router.post("/nodes/{node_id}/children", response_model=NodeIdsResponse, status_code=201)
async def create_children(
    node_id: str,
    request: CreateChildrenRequest,
    editor: GraphEditor = Depends(get_editor),
) -> NodeIdsResponse:
    return NodeIdsResponse(node_ids=editor.add_children(node_id, request.labels))


@router.put("/nodes/{node_id}/content", status_code=204)
async def update_node_content(
    node_id: str,
    request: UpdateContentRequest,
    editor: GraphEditor = Depends(get_editor),
) -> Response:
    editor.update_node_content(node_id, request.label, request.content)
    return Response(status_code=204)


@router.put("/nodes/{node_id}/position", status_code=204)
async def move_node(
    node_id: str,
    request: MoveNodeRequest,
    editor: GraphEditor = Depends(get_editor),
) -> Response:
    editor.move_node(node_id, Position(x=request.x, y=request.y))
    return Response(status_code=204)


@router.delete("/nodes/{node_id}", response_model=DeletionResponse)
async def delete_node(
    node_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> DeletionResponse:
    """Delete a node, its descendants and every edge touching them."""
    plan = editor.delete_node(node_id)
    return DeletionResponse(node_ids=list(plan.node_ids), edge_ids=list(plan.edge_ids))


@router.post("/nodes/{node_id}/brainstorm", response_model=NodeIdsResponse, status_code=201)
async def brainstorm(
    node_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> NodeIdsResponse:
    """Ask the AI for up to three new child ideas and add them."""
    return NodeIdsResponse(node_ids=editor.brainstorm(node_id))


@router.post("/nodes/{node_id}/choose", response_model=NodeIdsResponse)
async def choose(
    map_id: str,
    node_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> NodeIdsResponse:
    """Pick a choice option; returns the sibling options that were hidden."""
    return NodeIdsResponse(node_ids=choose_branch(editor.graph_store, map_id, node_id))


@router.post("/nodes/{node_id}/reset-choices", response_model=NodeIdsResponse)
async def reset(
    map_id: str,
    node_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> NodeIdsResponse:
    """Show every option of the choice group whose parent is ``node_id``."""
    return NodeIdsResponse(node_ids=reset_choices(editor.graph_store, map_id, node_id))


@router.post("/edges", response_model=EdgeResponse, status_code=201)
async def connect(
    request: ConnectRequest,
    editor: GraphEditor = Depends(get_editor),
) -> EdgeResponse:
    edge_id = editor.connect(request.source, request.target)
    return EdgeResponse(id=edge_id, source=request.source, target=request.target)


@router.delete("/edges/{edge_id}", status_code=204)
async def disconnect(
    edge_id: str,
    editor: GraphEditor = Depends(get_editor),
) -> Response:
    editor.disconnect(edge_id)
    return Response(status_code=204)
