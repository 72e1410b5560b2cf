"""
Ticket External Collaborators
==============================

Actor resolution for the HTTP layer.
"""

from typing import Optional

from helpdesk.tickets.application.services import IActorResolver


class HeaderActorResolver(IActorResolver):
    """
    Resolves the actor from a request header value.

    Any non-blank reference is taken as the actor id; authentication is
    expected to happen upstream.
    """

    def __init__(self, max_length: int = 255):
        self.max_length = max_length

    async def resolve(self, actor_ref: Optional[str]) -> Optional[str]:
        if actor_ref is None:
            return None
        actor = actor_ref.strip()
        if not actor or len(actor) > self.max_length:
            return None
        return actor
