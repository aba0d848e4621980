"""Session state machine for one co-op participant.

All state for a participant lives in a :class:`SessionContext` owned by a
:class:`SessionMachine`. The machine is driven by two kinds of events, both
handled one at a time on the owning asyncio loop:

- link events (open, message, close, error) delivered by the transport
- local requests from whatever UI sits on top (connect, disconnect,
  request inputs, send to AI, submit input)

Status flow::

    disconnected -> connecting -> connected -> waiting / generating -> connected
           ^______________________________________________|  (close / error)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from . import protocol
from .aggregator import InputAggregator, QuiescenceTimer, Scheduler
from .collaborators import ChatRenderer, GenerationBackend, Link, LogSink, Transport
from .config import CoopSettings
from .log_manager import DEBUG, ERRORS, EVENTS, LogManager
from .membership import MembershipRegistry, Participant, RoleError
from .protocol import Envelope, MessageType, ProtocolError
from .relay import BroadcastRelay


class SessionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WAITING = "waiting"
    GENERATING = "generating"


class ConfigurationError(Exception):
    """The session cannot start because its settings are incomplete."""


@dataclass
class SessionContext:
    """Everything one participant knows about its session."""

    settings: CoopSettings
    user_id: str
    status: SessionStatus = SessionStatus.DISCONNECTED
    is_host: bool = False
    link: Optional[Link] = None
    registry: MembershipRegistry = field(default_factory=MembershipRegistry)
    aggregator: Optional[InputAggregator] = None


ChangeListener = Callable[["SessionMachine"], None]


class _LinkEvents:
    """Forwards one link's callbacks, dropping them once that link is replaced."""

    def __init__(self, machine: "SessionMachine", generation: int):
        self._machine = machine
        self._generation = generation

    def _current(self) -> bool:
        return self._generation == self._machine._generation

    def on_open(self) -> None:
        if self._current():
            self._machine._handle_open()

    def on_message(self, raw: Union[str, bytes]) -> None:
        if self._current():
            self._machine._handle_message(raw)

    def on_close(self) -> None:
        if self._current():
            self._machine._handle_close()

    def on_error(self, cause: BaseException) -> None:
        if self._current():
            self._machine._handle_error(cause)


class SessionMachine:
    """Drives one participant through the co-op protocol.

    Args:
        settings: Startup configuration
        transport: Opens links to the coordination point
        backend: Host application's generation pipeline (used when host)
        renderer: Chat UI that shows broadcast responses (used when client)
        log: Log sink; a fresh LogManager if omitted
        scheduler: Timer scheduler for the quiescence trigger (asyncio by default)
        on_change: Called after every handled event, for UI refresh
    """

    def __init__(
        self,
        settings: CoopSettings,
        transport: Transport,
        backend: Optional[GenerationBackend] = None,
        renderer: Optional[ChatRenderer] = None,
        log: Optional[LogSink] = None,
        scheduler: Optional[Scheduler] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self.context = SessionContext(settings=settings, user_id=settings.user_id)
        self.log: LogSink = log if log is not None else LogManager()
        self._transport = transport
        self._backend = backend
        self._renderer = renderer
        self._on_change = on_change
        self._generation = 0
        self.timer = QuiescenceTimer(settings.quiescence_seconds, self._on_quiescence, scheduler)
        self.relay = BroadcastRelay(lambda: self.context.link, self.log)
        self._handlers: Dict[MessageType, Callable] = {
            MessageType.WELCOME: self._on_welcome,
            MessageType.USER_JOINED: self._on_user_joined,
            MessageType.USER_LEFT: self._on_user_left,
            MessageType.HOST_INPUT_REQUEST: self._on_host_input_request,
            MessageType.CLIENT_INPUT: self._on_client_input,
            MessageType.BROADCAST_MESSAGE: self._on_broadcast_message,
        }

    # -- state -----------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self.context.status

    @property
    def is_host(self) -> bool:
        return self.context.is_host

    @property
    def user_id(self) -> str:
        return self.context.user_id

    @property
    def is_connected(self) -> bool:
        link = self.context.link
        return link is not None and link.is_open

    @property
    def participants(self) -> List[Participant]:
        return self.context.registry.list_all()

    @property
    def aggregator(self) -> Optional[InputAggregator]:
        return self.context.aggregator

    def set_on_change(self, listener: Optional[ChangeListener]) -> None:
        self._on_change = listener

    # -- local trigger points ----------------------------------------------

    def connect(self) -> bool:
        """Open a link to the configured server. Returns True if an attempt started."""
        ctx = self.context
        if ctx.link is not None:
            return False

        if not ctx.settings.server_url:
            error = ConfigurationError("Server URL is not configured.")
            self._report_error(f"Error: {error}")
            self._set_status(SessionStatus.DISCONNECTED)
            self._changed()
            return False

        self._generation += 1
        self._set_status(SessionStatus.CONNECTING)
        try:
            ctx.link = self._transport.open(
                ctx.settings.server_url, _LinkEvents(self, self._generation)
            )
        except ConnectionError as e:
            self._generation += 1
            self._report_error(f"Error: Could not connect to server ({e}).")
            self._teardown()
            return False
        finally:
            self._changed()
        return True

    def disconnect(self) -> bool:
        link = self.context.link
        if link is None:
            return False
        # callbacks from the closing link are stale from here on
        self._generation += 1
        link.close()
        self._teardown()
        self.log.add(EVENTS, "Connection to server closed.")
        self._changed()
        return True

    def request_inputs(self) -> bool:
        """Host only: ask every client for this round's input."""
        if not self.context.is_host:
            self.log.add(DEBUG, "request_inputs ignored: not host")
            return False
        if not self._send(protocol.make(MessageType.HOST_INPUT_REQUEST)):
            return False
        self.log.add(EVENTS, "System: Input requested from all clients.")
        return True

    def send_to_ai(self) -> Optional[str]:
        """Host only: close the round and hand the combined prompt to the backend."""
        ctx = self.context
        if not ctx.is_host or ctx.aggregator is None:
            self.log.add(DEBUG, "send_to_ai ignored: not host")
            return None

        self.timer.cancel()
        combined = ctx.aggregator.combine()
        if combined is None:
            return None

        self._set_status(SessionStatus.GENERATING)
        self.log.add(EVENTS, "System: Combined input sent to the AI.")
        if self._backend is not None:
            try:
                self._backend.generate(combined)
            except Exception as e:
                self._report_error(f"Error: Generation failed ({e}).")
                self._set_status(SessionStatus.CONNECTED)
        self._changed()
        return combined

    def submit_input(self, text: str) -> bool:
        """Submit this participant's input for the current round."""
        ctx = self.context
        if not text.strip():
            return False
        if not self.is_connected:
            self.log.add(DEBUG, "submit_input ignored: not connected")
            return False

        if ctx.is_host and ctx.aggregator is not None:
            ctx.aggregator.submit(ctx.user_id, text)
            self.log.add(EVENTS, "Your input is ready. Waiting for others...")
            self.timer.arm()
            self._changed()
            return True

        envelope = protocol.make(
            MessageType.USER_INPUT,
            id=ctx.user_id,
            name=ctx.settings.user_name,
            text=text,
        )
        if not self._send(envelope):
            return False
        self.log.add(EVENTS, "System: Your input was sent to the host.")
        return True

    def intercept_user_message(self, text: str) -> bool:
        """Hook for the host application's outgoing chat message.

        Returns True when the message was taken over by the session; the
        application must then drop its own send.
        """
        if not self.context.settings.enabled or not self.is_connected:
            return False
        self.submit_input(text)
        return True

    def on_message_generated(self, message_id: str) -> bool:
        """Hook for the host application's "AI reply ready" event."""
        ctx = self.context
        if not ctx.is_host or not self.is_connected or self._backend is None:
            return False

        message = self._backend.get_last_generated_message(message_id)
        if message is None or message.role != "assistant":
            return False

        if not self.relay.broadcast_result(message.message):
            return False
        self._set_status(SessionStatus.CONNECTED)
        self._changed()
        return True

    def on_generation_failed(self, cause: BaseException) -> None:
        """Hook for a failed generation; the round is abandoned."""
        self._report_error(f"Error: Generation failed ({cause}).")
        if self.context.status is SessionStatus.GENERATING:
            self._set_status(SessionStatus.CONNECTED)
        self._changed()

    # -- link events ---------------------------------------------------------

    def _handle_open(self) -> None:
        ctx = self.context
        self._set_status(SessionStatus.CONNECTED)
        self._send(protocol.make(MessageType.JOIN, id=ctx.user_id, name=ctx.settings.user_name))
        self.log.add(EVENTS, "System: Connected to server.")
        self._changed()

    def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            envelope = protocol.decode(raw)
        except ProtocolError as e:
            self.log.add(DEBUG, f"Ignored frame: {e}")
            return

        handler = self._handlers.get(envelope.type)
        if handler is None:
            self.log.add(DEBUG, f"Ignored {envelope.type.value}: not addressed to participants")
            return
        self.log.add(DEBUG, f"Received {envelope.type.value}")
        handler(envelope)
        self._changed()

    def _handle_close(self) -> None:
        self._teardown()
        self.log.add(EVENTS, "Connection to server closed.")
        self._changed()

    def _handle_error(self, cause: BaseException) -> None:
        link = self.context.link
        self._generation += 1
        self.log.add(DEBUG, f"Link error: {cause!r}")
        self._report_error("Error: Could not connect to server.")
        if link is not None:
            link.close()
        self._teardown()
        self._changed()

    # -- protocol handlers ---------------------------------------------------

    def _on_welcome(self, envelope: Envelope) -> None:
        data = envelope.data
        ctx = self.context
        ctx.user_id = data.id
        ctx.is_host = data.is_host

        roster = []
        for user in data.users:
            is_host = (
                user.is_host
                or user.id == data.host_id
                or (data.is_host and user.id == data.id)
            )
            roster.append(Participant(id=user.id, name=user.name, is_host=is_host))
        for refused in ctx.registry.replace(roster):
            self.log.add(ERRORS, f"Roster: ignored second host claim from {refused}")

        self.timer.cancel()
        ctx.aggregator = InputAggregator() if ctx.is_host else None
        self.log.add(EVENTS, f"Joined as {'Host' if ctx.is_host else 'Client'}.")

    def _on_user_joined(self, envelope: Envelope) -> None:
        data = envelope.data
        participant = Participant(id=data.id, name=data.name, is_host=data.is_host)
        try:
            added = self.context.registry.add_or_ignore(participant)
        except RoleError as e:
            self.log.add(ERRORS, f"Roster: {e}")
            added = True
        if added:
            self.log.add(EVENTS, f"{data.name} has joined.")

    def _on_user_left(self, envelope: Envelope) -> None:
        data = envelope.data
        ctx = self.context
        removed = ctx.registry.remove(data.id)
        if ctx.aggregator is not None:
            ctx.aggregator.discard(data.id)
        if removed is not None:
            self.log.add(EVENTS, f"{removed.name} has left.")

    def _on_host_input_request(self, envelope: Envelope) -> None:
        if self.context.status not in (SessionStatus.CONNECTED, SessionStatus.WAITING):
            self.log.add(DEBUG, f"Input request ignored while {self.context.status.value}")
            return
        self._set_status(SessionStatus.WAITING)
        self.log.add(EVENTS, "System: The host is waiting for your input.")

    def _on_client_input(self, envelope: Envelope) -> None:
        data = envelope.data
        ctx = self.context
        if not ctx.is_host or ctx.aggregator is None:
            self.log.add(DEBUG, "client_input ignored: not host")
            return
        sender = ctx.registry.get(data.id)
        if sender is None:
            self.log.add(DEBUG, f"client_input ignored: unknown participant {data.id}")
            return
        ctx.aggregator.submit(sender.id, data.text)
        self.log.add(EVENTS, f"Received input from {sender.name}.")

    def _on_broadcast_message(self, envelope: Envelope) -> None:
        if not self.context.is_host and self._renderer is not None:
            self._renderer.render_assistant_message(envelope.data.text)
        self._set_status(SessionStatus.CONNECTED)

    # -- helpers -------------------------------------------------------------

    def _on_quiescence(self) -> None:
        self.log.add(DEBUG, "Quiescence timer fired")
        self.send_to_ai()

    def _send(self, envelope: Envelope) -> bool:
        link = self.context.link
        if link is None or not link.is_open:
            self.log.add(ERRORS, f"Send failed ({envelope.type.value}): not connected.")
            return False
        return link.send(protocol.encode(envelope))

    def _teardown(self) -> None:
        ctx = self.context
        ctx.link = None
        ctx.is_host = False
        ctx.registry.clear()
        ctx.aggregator = None
        self.timer.cancel()
        self._set_status(SessionStatus.DISCONNECTED)

    def _set_status(self, status: SessionStatus) -> None:
        self.context.status = status

    def _report_error(self, message: str) -> None:
        self.log.add(ERRORS, message)
        self.log.add(EVENTS, message)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
