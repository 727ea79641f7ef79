from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from models.session import ConversationTurn


SESSION_ACTIONS = ("start", "turn", "complete")


class StartAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["start"]


class TurnAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["turn"]
    conversation_turn: ConversationTurn
    metrics: dict[str, Any] | None = None


class CompleteAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["complete"]
    metrics: dict[str, Any] | None = None


SessionAction = Annotated[
    Union[StartAction, TurnAction, CompleteAction],
    Field(discriminator="action"),
]

session_action_adapter: TypeAdapter[SessionAction] = TypeAdapter(SessionAction)
