"""Audience resolution: which identities a message belongs to.

Every message belongs to exactly one audience. A message without a recipient
goes to the general chat; a message with a recipient belongs to the direct
conversation between its author and that recipient. The same resolver is used
to filter history and to route live delivery, so a client re-fetching history
sees exactly what a live listener accumulated.
"""
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .models import Message


@dataclass(frozen=True)
class GeneralAudience:
    """Every connected session"""

    def includes(self, identity_id: int) -> bool:
        return True


@dataclass(frozen=True)
class DirectAudience:
    """The two participants of a direct conversation.

    The pair is stored in ascending order so Direct(a, b) == Direct(b, a).
    """
    low: int
    high: int

    @classmethod
    def between(cls, a: int, b: int) -> "DirectAudience":
        return cls(min(a, b), max(a, b))

    @property
    def members(self) -> frozenset[int]:
        return frozenset((self.low, self.high))

    def includes(self, identity_id: int) -> bool:
        return identity_id in (self.low, self.high)

    def other(self, identity_id: int) -> int:
        """Return the participant that is not `identity_id` (itself for a self-conversation)"""
        if identity_id == self.low:
            return self.high
        if identity_id == self.high:
            return self.low
        raise ValueError(f"identity {identity_id} is not part of {self}")


Audience = Union[GeneralAudience, DirectAudience]

GENERAL = GeneralAudience()


def audience_for(author_id: int, recipient_id: int | None) -> Audience:
    """Audience of a message written by `author_id` to `recipient_id`"""
    if recipient_id is None:
        return GENERAL
    return DirectAudience.between(author_id, recipient_id)


def resolve(message: "Message") -> Audience:
    """Audience a persisted message belongs to"""
    return audience_for(message.author.id, message.recipient_id)
