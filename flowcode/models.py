from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from flowcode.utils.time import now_ms

SECTION_ORDER: Tuple[str, ...] = (
    "PRD",
    "ARCHITECTURE",
    "STACK",
    "TASKS",
    "STRUCTURE",
    "SCHEMA",
    "CONVENTIONS",
    "ENV",
    "API",
    "UI",
    "ERRORS",
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 7) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def new_session_id() -> str:
    return f"session_{now_ms()}_{_random_suffix()}"


def new_message_id() -> str:
    return f"msg_{now_ms()}_{_random_suffix(4)}"


def section_filename(section: str) -> str:
    return f"{section.lower()}.md"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    role: Role
    content: str
    id: str = field(default_factory=new_message_id)
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Message":
        return cls(
            id=payload["id"],
            role=Role(payload["role"]),
            content=payload["content"],
            timestamp=payload["timestamp"],
        )


@dataclass
class Session:
    id: str
    project_name: str
    project_path: str
    created_at: int
    updated_at: int
    messages: List[Message] = field(default_factory=list)
    plan_generated: bool = False
    plan_version: int = 0

    def history(self) -> List[Dict[str, str]]:
        return [{"role": message.role.value, "content": message.content} for message in self.messages]

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "projectName": self.project_name,
            "projectPath": self.project_path,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "messages": [message.to_dict() for message in self.messages],
            "planGenerated": self.plan_generated,
            "planVersion": self.plan_version,
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "Session":
        return cls(
            id=payload["id"],
            project_name=payload["projectName"],
            project_path=payload["projectPath"],
            created_at=payload["createdAt"],
            updated_at=payload["updatedAt"],
            messages=[Message.from_dict(item) for item in payload.get("messages", [])],
            plan_generated=payload.get("planGenerated", False),
            plan_version=payload.get("planVersion", 0),
        )


@dataclass
class PlanArtifactSet:
    sections: Dict[str, str]
    project_name: Optional[str] = None

    def ordered(self) -> Iterator[Tuple[str, str]]:
        for section in SECTION_ORDER:
            if section in self.sections:
                yield section, self.sections[section]
