from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

MessageRole = Literal["user", "assistant"]


@dataclass
class ConversationMessage:
    role: MessageRole
    content: str


class ConversationStore:
    """Caller-owned transcript of one insight chat.

    Messages are only ever appended; while an answer streams in, the content of the last
    assistant message is replaced with the text accumulated so far.
    """

    def __init__(self, messages: list[ConversationMessage] | None = None) -> None:
        self._messages: list[ConversationMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(ConversationMessage(role=m.role, content=m.content) for m in self._messages)

    @property
    def last(self) -> ConversationMessage | None:
        return self._messages[-1] if self._messages else None

    def append(self, role: MessageRole, content: str) -> None:
        if role not in ("user", "assistant"):
            raise ValueError(f"unsupported message role '{role}'")
        self._messages.append(ConversationMessage(role=role, content=content))

    def append_user(self, content: str) -> None:
        self.append("user", content)

    def begin_assistant(self) -> None:
        self.append("assistant", "")

    def update_last(self, content: str) -> None:
        if not self._messages or self._messages[-1].role != "assistant":
            raise ValueError("last message is not an assistant message")
        self._messages[-1].content = content

    def as_payload(self) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self._messages]

    def clear(self) -> None:
        self._messages.clear()
