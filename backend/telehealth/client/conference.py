"""
Client-side session lifecycle for a telehealth room.

``TelehealthApiClient`` talks to the action endpoint; ``ConferenceSession``
launches the conferencing widget from the returned room configuration, keeps
the heartbeat running while the participant is in the conference and tears
everything down on hang-up. The widget itself is a third-party component
reached only through the ``ConferenceWidget`` protocol.
"""

import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol
import httpx
from telehealth.client.heartbeat import HEARTBEAT_INTERVAL_SECONDS, HeartbeatClient

logger = logging.getLogger(__name__)

CLOSE_WITHOUT_UPDATING = "CloseWithoutUpdating"


class ConferenceWidget(Protocol):
    def add_listener(self, event: str, callback: Callable[..., Any]) -> None: ...

    def execute_command(self, command: str, *args: Any) -> None: ...

    def dispose(self) -> None: ...


class ReadyState(str, Enum):
    READY = "ready"
    NOT_READY = "not_ready"
    UNAVAILABLE = "unavailable"


class TelehealthApiClient:
    """Calls the telehealth action endpoint with the caller's bearer and CSRF tokens."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        csrf_token: Optional[str] = None,
        patient_portal: bool = False,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.patient_portal = patient_portal
        self.path = "/api/portal/telehealth" if patient_portal else "/api/telehealth"
        headers = {"Authorization": f"Bearer {access_token}"}
        if csrf_token:
            headers["apicsrftoken"] = csrf_token
        self._headers = headers
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def call(self, action: str, **params) -> dict:
        query = {"action": action}
        query.update({k: v for k, v in params.items() if v is not None})
        response = await self._http.get(self.path, params=query, headers=self._headers)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self._http.aclose()


class ConferenceSession:
    """One conference at a time: launch, heartbeat while joined, end."""

    def __init__(
        self,
        api: TelehealthApiClient,
        widget_factory: Callable[[dict], ConferenceWidget],
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        on_status_prompt: Optional[Callable[[dict], None]] = None,
    ):
        self.api = api
        self.widget_factory = widget_factory
        self.on_status_prompt = on_status_prompt
        self.current: Optional[dict] = None
        self.widget: Optional[ConferenceWidget] = None
        self.heartbeat = HeartbeatClient(self._send_heartbeat, interval=heartbeat_interval)

    @property
    def active(self) -> bool:
        return self.current is not None

    async def launch(self, appointment_id: str) -> dict:
        if self.current is not None:
            logger.warning("Telehealth session already active for appointment %s", self.current.get("appointmentId"))
            return self.current

        config = await self.api.call("launch_data", appointment_id=appointment_id)
        widget = self.widget_factory(config)
        widget.add_listener("videoConferenceJoined", self.on_joined)
        widget.add_listener("videoConferenceLeft", self.on_left)
        widget.add_listener("readyToClose", lambda *_: self.end(False))
        self.widget = widget
        self.current = config
        return config

    async def check_provider_ready(self, appointment_id: str) -> ReadyState:
        try:
            data = await self.api.call("patient_ready_check", appointment_id=appointment_id)
        except httpx.HTTPError as e:
            logger.error("Failed to check provider status for appointment %s: %s", appointment_id, e)
            return ReadyState.UNAVAILABLE
        return ReadyState.READY if data.get("providerReady") else ReadyState.NOT_READY

    async def patient_launch(self, appointment_id: str) -> ReadyState:
        """Join only once the provider is present; an unreachable check is reported, not retried."""
        state = await self.check_provider_ready(appointment_id)
        if state is ReadyState.READY:
            await self.launch(appointment_id)
        return state

    def on_joined(self, *_) -> None:
        logger.info("Conference joined")
        self.heartbeat.start()
        if self.current and self.current.get("isModerator") and self.current.get("enableLobby"):
            self.widget.execute_command("toggleLobby", True)

    def on_left(self, *_) -> None:
        logger.info("Conference left")
        self.heartbeat.stop()

    def end(self, show_status_update: bool = False) -> None:
        # The timer goes first so no heartbeat fires against a session being torn down.
        self.heartbeat.stop()

        if self.widget is not None:
            try:
                self.widget.dispose()
            except Exception as e:
                logger.warning("Error disposing conference widget: %s", e)
            self.widget = None

        if show_status_update and self.current and not self.api.patient_portal and self.on_status_prompt:
            self.on_status_prompt(self.current)

        self.current = None

    async def set_status(self, appointment_id: str, status: str) -> Optional[dict]:
        if status == CLOSE_WITHOUT_UPDATING:
            return None
        return await self.api.call("set_status", appointment_id=appointment_id, status=status)

    async def _send_heartbeat(self) -> None:
        if self.current and self.current.get("appointmentId"):
            await self.api.call("heartbeat", appointment_id=self.current["appointmentId"])
