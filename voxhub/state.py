"""
In-memory state for connected clients and voice channels
Single registry per process, owned by the SignalingHub
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class Client:
    id: str
    display_name: Optional[str] = None

    @property
    def joined(self) -> bool:
        return self.display_name is not None

    def to_dict(self) -> dict:
        return {"id": self.id, "displayName": self.display_name}


@dataclass
class VoiceChannel:
    name: str
    # dict as an ordered set so snapshots are stable
    member_ids: Dict[str, None] = field(default_factory=dict)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self.member_ids

    def __len__(self) -> int:
        return len(self.member_ids)

    def others(self, client_id: str) -> List[str]:
        return [cid for cid in self.member_ids if cid != client_id]


class PresenceRegistry:
    """Connected clients keyed by transport id, in connection order"""

    def __init__(self):
        self.members: Dict[str, Client] = {}

    def __contains__(self, client_id: str) -> bool:
        return client_id in self.members

    def __len__(self) -> int:
        return len(self.members)

    def get(self, client_id: str) -> Optional[Client]:
        return self.members.get(client_id)

    def display_name(self, client_id: str) -> Optional[str]:
        client = self.members.get(client_id)
        return client.display_name if client else None

    def connect(self, client_id: str) -> Client:
        client = self.members.get(client_id)
        if client is None:
            client = self.members[client_id] = Client(id=client_id)
        return client

    def join(self, client_id: str, display_name: str) -> Client:
        client = self.connect(client_id)
        client.display_name = display_name
        return client

    def remove(self, client_id: str) -> Optional[Client]:
        """Drop a client; returns the removed Client or None if unknown"""
        return self.members.pop(client_id, None)

    def ids(self) -> List[str]:
        return list(self.members)

    def snapshot(self) -> List[dict]:
        """Joined clients as {id, displayName}, in registry order"""
        return [c.to_dict() for c in self.members.values() if c.joined]


class VoiceChannelTable:
    """
    Named voice channels plus a reverse index client_id -> channel name.
    Both maps are updated together so a client sits in at most one channel.
    """

    def __init__(self):
        self.channels: Dict[str, VoiceChannel] = {}
        self.locations: Dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.channels

    def get(self, name: str) -> Optional[VoiceChannel]:
        return self.channels.get(name)

    def channel_of(self, client_id: str) -> Optional[str]:
        return self.locations.get(client_id)

    def share_channel(self, a: str, b: str) -> bool:
        name = self.locations.get(a)
        return name is not None and self.locations.get(b) == name

    def add(self, client_id: str, name: str) -> VoiceChannel:
        if self.locations.get(client_id) not in (None, name):
            raise ValueError(f"{client_id} is already in channel {self.locations[client_id]}")
        channel = self.channels.get(name)
        if channel is None:
            channel = self.channels[name] = VoiceChannel(name=name)
        channel.member_ids[client_id] = None
        self.locations[client_id] = name
        return channel

    def discard(self, client_id: str) -> Optional[VoiceChannel]:
        """
        Remove client from its channel. Returns the channel it left (possibly
        already deleted from the table if it became empty), or None.
        """
        name = self.locations.pop(client_id, None)
        if name is None:
            return None
        channel = self.channels[name]
        channel.member_ids.pop(client_id, None)
        if not channel.member_ids:
            del self.channels[name]
        return channel

