"""Topic idea suggestions for starting a new map."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mapdiary.api.dependencies import get_gateway, get_user_id
from mapdiary.llm.gateway import AIGateway

router = APIRouter(prefix="/api/ideas", tags=["ideas"])


class TopicIdeasRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=200)


class TopicIdeasResponse(BaseModel):
    topic: str
    ideas: list[str]


@router.post("", response_model=TopicIdeasResponse)
async def topic_ideas(
    request: TopicIdeasRequest,
    gateway: AIGateway = Depends(get_gateway),
    _user_id: str = Depends(get_user_id),
) -> TopicIdeasResponse:
    """Up to five ideas related to ``topic``."""
    ideas = gateway.generate_topic_ideas(request.topic)
    return TopicIdeasResponse(topic=request.topic, ideas=ideas)
