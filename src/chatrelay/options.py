from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from .args import ArgSpec, optional_arg, required_arg
from .router import ActionFlags


@dataclass(slots=True)
class ActionDraft:
    args: list[ArgSpec] = field(default_factory=list)
    private: bool = False
    mention_required: bool = False

    @property
    def flags(self) -> ActionFlags:
        return ActionFlags(private=self.private, mention_required=self.mention_required)


type ChatOption = Callable[[ActionDraft], None]


def with_mention() -> ChatOption:
    def apply(draft: ActionDraft) -> None:
        draft.mention_required = True

    return apply


def with_private_message() -> ChatOption:
    def apply(draft: ActionDraft) -> None:
        draft.private = True

    return apply


def with_optional_arg(name: str, default: str = "", description: str = "") -> ChatOption:
    def apply(draft: ActionDraft) -> None:
        draft.args.append(optional_arg(name, default, description))

    return apply


def with_required_arg(name: str, description: str = "") -> ChatOption:
    def apply(draft: ActionDraft) -> None:
        draft.args.append(required_arg(name, description))

    return apply
