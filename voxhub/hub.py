"""
Signaling hub: presence, chat broadcast and voice channel relay

All operations are synchronous. Under a single asyncio loop each one runs to
completion before another connection's message is handled, so the registry
and channel table never expose a half-applied mutation. Outbound delivery is
delegated to a non-blocking `send(client_id, event, data)` callable.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from .errors import AuthorizationError, MalformedMessage, SignalingError
from .state import PresenceRegistry, VoiceChannelTable
from .utils import require_str

logger = logging.getLogger("voxhub")

SendFn = Callable[[str, str, Any], None]

# signal kind -> (event name, payload field carrying the opaque blob)
SIGNAL_KINDS = {
    "offer": ("webrtcOffer", "offer"),
    "answer": ("webrtcAnswer", "answer"),
    "iceCandidate": ("webrtcIceCandidate", "candidate"),
}
EVENT_KINDS = {event: kind for kind, (event, _) in SIGNAL_KINDS.items()}


class SignalingHub:
    def __init__(self, send: SendFn):
        self._send = send
        self.registry = PresenceRegistry()
        self.voice = VoiceChannelTable()
        self._handlers = {
            "join": self._on_join,
            "chatMessage": self._on_chat,
            "joinVoiceChannel": self._on_join_voice,
            "leaveVoiceChannel": self._on_leave_voice,
            "webrtcOffer": self._on_signal,
            "webrtcAnswer": self._on_signal,
            "webrtcIceCandidate": self._on_signal,
        }

    # ============================================================
    # OUTBOUND
    # ============================================================

    def _emit(self, targets: Iterable[str], event: str, data: Any) -> None:
        for client_id in targets:
            self._send(client_id, event, data)

    def _everyone_but(self, client_id: str):
        return [cid for cid in self.registry.ids() if cid != client_id]

    def _voice_notice(self, client_id: str) -> dict:
        return {"userId": client_id, "displayName": self.registry.display_name(client_id)}

    # ============================================================
    # PRESENCE
    # ============================================================

    def connect(self, client_id: str) -> None:
        self.registry.connect(client_id)
        logger.info("🔌 Client connected: %s (total: %d)", client_id, len(self.registry))

    def join(self, client_id: str, display_name: str) -> None:
        """Set display name, announce to others, then push userList to all"""
        client = self.registry.join(client_id, display_name)
        logger.info("👤 %s joined as %s", client_id, display_name)
        self._emit(self._everyone_but(client_id), "userJoined", client.to_dict())
        self._emit(self.registry.ids(), "userList", self.registry.snapshot())

    def remove(self, client_id: str) -> None:
        client = self.registry.remove(client_id)
        if client is None:
            return
        logger.info("👋 Client removed: %s (remaining: %d)", client_id, len(self.registry))
        # never-joined clients were never announced
        if not client.joined:
            return
        remaining = self.registry.ids()
        self._emit(remaining, "userDisconnected", client.to_dict())
        self._emit(remaining, "userList", self.registry.snapshot())

    def chat(self, client_id: str, message: str) -> None:
        self._emit(self.registry.ids(), "chatMessage", {
            "senderId": client_id,
            "displayName": self.registry.display_name(client_id) or "Anonymous",
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    # ============================================================
    # VOICE CHANNELS
    # ============================================================

    def join_channel(self, client_id: str, channel_name: str) -> None:
        if client_id not in self.registry:
            logger.debug("Ignoring channel join from unknown client %s", client_id)
            return

        current = self.voice.channel_of(client_id)
        if current == channel_name:
            return
        if current is not None:
            self.leave_channel(client_id)

        channel = self.voice.add(client_id, channel_name)
        logger.info("🎙️ %s joined voice channel %r (%d members)",
                    client_id, channel_name, len(channel))
        self._emit(channel.others(client_id), "userJoinedVoice", self._voice_notice(client_id))

    def leave_channel(self, client_id: str) -> Optional[str]:
        """Leave current channel; returns its name, or None if not in one"""
        channel = self.voice.discard(client_id)
        if channel is None:
            return None
        logger.info("🔇 %s left voice channel %r (%d remaining)",
                    client_id, channel.name, len(channel))
        self._emit(channel.member_ids, "userLeftVoice", self._voice_notice(client_id))
        return channel.name

    def voice_members(self, channel_name: str) -> list:
        channel = self.voice.get(channel_name)
        if channel is None:
            return []
        return [self.registry.get(cid).to_dict() for cid in channel.member_ids]

    def relay_signal(self, sender_id: str, target_id: str, kind: str, payload: Any) -> None:
        """
        Forward an opaque negotiation payload. Offers require a shared
        channel; answers and candidates only need a connected target.
        """
        if kind not in SIGNAL_KINDS:
            raise MalformedMessage(f"unknown signal kind {kind!r}")

        if target_id not in self.registry:
            logger.debug("Dropping %s from %s: target %s is gone", kind, sender_id, target_id)
            return

        if kind == "offer" and not self.voice.share_channel(sender_id, target_id):
            raise AuthorizationError(
                "Cannot establish connection with user not in same voice channel"
            )

        event, field = SIGNAL_KINDS[kind]
        self._send(target_id, event, {
            "senderId": sender_id,
            "displayName": self.registry.display_name(sender_id),
            field: payload,
        })

    def disconnect_cleanup(self, client_id: str) -> None:
        """Leave voice first so a half-removed client is never addressable"""
        left = self.leave_channel(client_id)
        if left is not None and left in self.voice:
            self._emit(self.voice.get(left).member_ids, "voiceUserList", {
                "channelName": left,
                "members": self.voice_members(left),
            })
        self.remove(client_id)

    # ============================================================
    # INBOUND DISPATCH
    # ============================================================

    def dispatch(self, client_id: str, event: str, data: Any) -> None:
        """Route one inbound event; rejected messages answer with `error`"""
        try:
            handler = self._handlers.get(event)
            if handler is None:
                raise MalformedMessage(f"unknown event {event!r}")
            handler(client_id, event, data)
        except SignalingError as e:
            self.reject(client_id, e)

    def reject(self, client_id: str, error: SignalingError) -> None:
        logger.warning("Rejected message from %s: %s", client_id, error.message)
        self._send(client_id, "error", {"message": error.message})

    def _on_join(self, client_id, event, data):
        # names are self-asserted; any string goes
        if not isinstance(data, str):
            raise MalformedMessage("display name must be a string")
        self.join(client_id, data)

    def _on_chat(self, client_id, event, data):
        message = data.get("message") if isinstance(data, dict) else data
        if not isinstance(message, str):
            raise MalformedMessage("chat message must be a string")
        self.chat(client_id, message)

    def _on_join_voice(self, client_id, event, data):
        self.join_channel(client_id, require_str(data, "channel name"))

    def _on_leave_voice(self, client_id, event, data):
        self.leave_channel(client_id)

    def _on_signal(self, client_id, event, data):
        if not isinstance(data, dict):
            raise MalformedMessage(f"{event} payload must be an object")
        target_id = data.get("targetId") or data.get("targetUserId")
        if not isinstance(target_id, str):
            raise MalformedMessage(f"{event} requires targetId")
        kind = EVENT_KINDS[event]
        self.relay_signal(client_id, target_id, kind, data.get(SIGNAL_KINDS[kind][1]))
