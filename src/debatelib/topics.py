"""Debate topics and their scripted conversations."""

import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Speaker(str, Enum):
    TUTOR = "Tutor AI"
    STUDENT = "Student AI"
    USER = "User"


class Message(BaseModel):
    """One scripted turn of a debate."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    speaker: Speaker
    text: str
    is_typing: bool = Field(False, alias="isTyping")

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        # Generated scripts number their turns
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class TopicDraft(BaseModel):
    """A topic that has not been stored yet (no id)."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    code: str
    script: list[Message] = Field(default_factory=list)
    pre_conditions: list[str] = Field(default_factory=list, alias="preConditions")
    post_conditions: list[str] = Field(default_factory=list, alias="postConditions")
    invariants: list[str] = Field(default_factory=list)

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "TopicDraft":
        return cls.model_validate(json.loads(text))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"script": {"__all__": {"is_typing"}}})


class Topic(TopicDraft):
    id: int


def transcript(topic: TopicDraft) -> str:
    """Render a topic's script as plain text, one turn per paragraph."""
    lines = [topic.title, "=" * len(topic.title), "", topic.description, ""]
    for message in topic.script:
        lines.append(f"{message.speaker.value}: {message.text}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
