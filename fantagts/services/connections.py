"""Connection registry.

Maps live realtime connections to who is behind them. The connection id is
only a routing address; the auction engine keys its own state by
participant id.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .errors import ValidationError, NotAuthorized

logger = logging.getLogger(__name__)

ROLE_PARTICIPANT = "participant"
ROLE_OPERATOR = "operator"
ROLE_OBSERVER = "observer"
ROLES = (ROLE_PARTICIPANT, ROLE_OPERATOR, ROLE_OBSERVER)

# Close code sent to a connection replaced by a newer one of the same participant
CLOSE_REPLACED = 4000


@dataclass
class Connection:
    connection_id: str
    transport: Any  # anything with async send_json(dict) and close(code)
    display_name: Optional[str] = None
    role: Optional[str] = None
    participant_id: Optional[str] = None
    verified: bool = False

    @property
    def registered(self) -> bool:
        return self.role is not None

    @property
    def is_bidder(self) -> bool:
        return self.role == ROLE_PARTICIPANT and self.verified

    def to_public(self) -> dict:
        return {
            "displayName": self.display_name,
            "role": self.role,
            "participantId": self.participant_id,
            "verified": self.verified,
        }


class ConnectionRegistry:
    """At most one live connection per participant."""

    def __init__(self, gateway):
        self.gateway = gateway
        self.connections: Dict[str, Connection] = {}

    def attach(self, connection_id: str, transport) -> Connection:
        """Track a freshly accepted connection before it registers."""
        connection = Connection(connection_id=connection_id, transport=transport)
        self.connections[connection_id] = connection
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def participant_connections(self, participant_id: str) -> List[Connection]:
        return [
            c for c in self.connections.values()
            if c.participant_id == participant_id and c.role == ROLE_PARTICIPANT
        ]

    async def register(
        self,
        connection_id: str,
        display_name: str,
        role: str,
        participant_id: Optional[str] = None,
    ) -> Connection:
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")

        connection = self.connections.get(connection_id)
        if connection is None:
            raise ValidationError("Unknown connection")

        verified = False
        if role == ROLE_PARTICIPANT:
            participant = await self.gateway.verify_participant(participant_id)
            if participant is None:
                raise NotAuthorized("Participant not recognised for this session, please sign in again")
            display_name = display_name or participant.display_name
            verified = True
            await self._evict_participant(participant_id, keep=connection_id)

        connection.display_name = display_name
        connection.role = role
        connection.participant_id = participant_id if role == ROLE_PARTICIPANT else None
        connection.verified = verified

        logger.info(f"Registered {display_name} as {role}")
        await self.broadcast_connections()
        return connection

    async def _evict_participant(self, participant_id: str, keep: str):
        for other in self.participant_connections(participant_id):
            if other.connection_id == keep:
                continue
            logger.info(f"Replacing connection {other.connection_id} of {participant_id}")
            self.connections.pop(other.connection_id, None)
            await self.send(other.connection_id, "session_replaced", {
                "reason": "You signed in from another device",
            }, connection=other)
            try:
                await other.transport.close(code=CLOSE_REPLACED)
            except Exception as e:
                logger.warning(f"Could not close replaced connection {other.connection_id}: {e}")

    async def unregister(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.pop(connection_id, None)
        if connection is not None and connection.registered:
            logger.info(f"Disconnected {connection.display_name}")
            await self.broadcast_connections()
        return connection

    def unverify_participants(self) -> List[Connection]:
        """Drop verification of every participant connection."""
        dropped = []
        for connection in self.connections.values():
            if connection.role == ROLE_PARTICIPANT and connection.verified:
                connection.verified = False
                dropped.append(connection)
        return dropped

    def public_list(self) -> List[dict]:
        return [c.to_public() for c in self.connections.values() if c.registered]

    async def send(self, connection_id: str, event: str, data: dict, connection: Connection = None) -> bool:
        """Send one event; delivery failures are logged, never raised."""
        connection = connection or self.connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.transport.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(f"Send of {event} to {connection_id} failed: {e}")
            return False

    async def send_to_participant(self, participant_id: str, event: str, data: dict):
        for connection in self.participant_connections(participant_id):
            await self.send(connection.connection_id, event, data)

    async def broadcast(self, event: str, data: dict, predicate: Callable[[Connection], bool] = None):
        for connection in list(self.connections.values()):
            if not connection.registered:
                continue
            if predicate is not None and not predicate(connection):
                continue
            await self.send(connection.connection_id, event, data, connection=connection)

    async def broadcast_connections(self):
        await self.broadcast("connections_update", {"connections": self.public_list()})
