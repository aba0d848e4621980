"""Coordination point - FastAPI server that assigns roles and fans out frames."""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .. import protocol
from ..log_manager import DEBUG, EVENTS, LogManager
from ..membership import MembershipRegistry, Participant
from ..protocol import Envelope, MessageType, ProtocolError


class CoordinatorService:
    """Single-room coordination point for a co-op session.

    The first participant to join while the host slot is empty becomes the
    host. Clients' inputs are forwarded to the host only; the host's input
    requests and AI responses go to every client.
    """

    def __init__(self, log: Optional[LogManager] = None):
        self.app = FastAPI(
            title="Co-op Session Coordinator",
            description="WebSocket coordination point for shared AI sessions",
            version="1.0.0",
        )
        self.log = log if log is not None else LogManager()
        self.registry = MembershipRegistry()
        self.host_id: Optional[str] = None
        self.websockets: Dict[str, WebSocket] = {}  # participant_id -> websocket

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._register_routes()

    def _register_routes(self):
        """Register FastAPI routes."""

        @self.app.get("/health")
        async def health():
            return {"status": "ok"}

        @self.app.get("/session")
        async def get_session():
            """Current roster and host."""
            return {
                "host_id": self.host_id,
                "participants": [
                    {"id": p.id, "name": p.name, "is_host": p.is_host}
                    for p in self.registry.list_all()
                ],
            }

        @self.app.websocket("/")
        async def websocket_endpoint(websocket: WebSocket):
            await self.handle_link(websocket)

    async def handle_link(self, websocket: WebSocket) -> None:
        """Serve one participant link. The first frame must be ``join``."""
        await websocket.accept()

        try:
            first = protocol.decode(await websocket.receive_text())
        except (ProtocolError, WebSocketDisconnect):
            await self._close_quietly(websocket, "Expected join")
            return
        if first.type is not MessageType.JOIN:
            await self._close_quietly(websocket, "Expected join")
            return
        if first.data.id in self.registry:
            await self._close_quietly(websocket, "Participant id already connected")
            return

        # registered synchronously; from here on every exit goes through _release
        participant = self._register(websocket, first.data.id, first.data.name)
        try:
            await self._welcome(websocket, participant)
            while True:
                raw = await websocket.receive_text()
                try:
                    envelope = protocol.decode(raw)
                except ProtocolError as e:
                    self.log.add(DEBUG, f"Ignored frame from {participant.id}: {e}")
                    continue
                await self._route(participant, envelope)
        except WebSocketDisconnect:
            pass
        finally:
            await self._release(participant)

    def _register(self, websocket: WebSocket, participant_id: str, name: str) -> Participant:
        is_host = self.host_id is None
        participant = Participant(id=participant_id, name=name, is_host=is_host)
        self.registry.add_or_ignore(participant)
        self.websockets[participant.id] = websocket
        if is_host:
            self.host_id = participant.id
        self.log.add(EVENTS, f"{name} joined as {'host' if is_host else 'client'}.")
        return participant

    async def _welcome(self, websocket: WebSocket, participant: Participant) -> None:
        await websocket.send_text(protocol.encode(protocol.make(
            MessageType.WELCOME,
            id=participant.id,
            isHost=participant.is_host,
            hostId=self.host_id,
            users=[
                {"id": p.id, "name": p.name, "isHost": p.is_host}
                for p in self.registry.list_all()
            ],
        )))
        await self._send_to(
            self._others(participant.id),
            protocol.make(
                MessageType.USER_JOINED,
                id=participant.id,
                name=participant.name,
                isHost=participant.is_host,
            ),
        )

    async def _release(self, participant: Participant) -> None:
        self.registry.remove(participant.id)
        self.websockets.pop(participant.id, None)
        if self.host_id == participant.id:
            self.host_id = None
        self.log.add(EVENTS, f"{participant.name} left.")
        await self._send_to(
            self._others(participant.id),
            protocol.make(MessageType.USER_LEFT, id=participant.id, name=participant.name),
        )

    async def _route(self, sender: Participant, envelope: Envelope) -> None:
        """Forward one frame according to the sender's role."""
        is_host = sender.id == self.host_id

        if envelope.type is MessageType.USER_INPUT and not is_host:
            if self.host_id is None:
                self.log.add(DEBUG, f"Input from {sender.id} dropped: no host")
                return
            await self._send_to([self.host_id], protocol.make(
                MessageType.CLIENT_INPUT,
                id=sender.id,
                name=sender.name,
                text=envelope.data.text,
            ))

        elif envelope.type is MessageType.HOST_INPUT_REQUEST and is_host:
            await self._send_to(self._others(sender.id), envelope)

        elif envelope.type is MessageType.BROADCAST_AI_RESPONSE and is_host:
            await self._send_to(
                self._others(sender.id),
                protocol.make(MessageType.BROADCAST_MESSAGE, text=envelope.data.text),
            )

        else:
            self.log.add(DEBUG, f"Ignored {envelope.type.value} from {sender.id}")

    def _others(self, participant_id: str) -> List[str]:
        return [pid for pid in self.websockets if pid != participant_id]

    async def _send_to(self, participant_ids: List[str], envelope: Envelope) -> None:
        frame = protocol.encode(envelope)
        for pid in participant_ids:
            ws = self.websockets.get(pid)
            if ws is None:
                continue
            try:
                await ws.send_text(frame)
            except Exception as e:
                # receiver is going away; its own endpoint cleans up
                self.log.add(DEBUG, f"Delivery to {pid} failed: {e}")

    async def _close_quietly(self, websocket: WebSocket, reason: str) -> None:
        try:
            await websocket.close(code=1008, reason=reason)
        except RuntimeError:
            pass


def create_app() -> FastAPI:
    """Create and return the FastAPI app."""
    service = CoordinatorService()
    return service.app
