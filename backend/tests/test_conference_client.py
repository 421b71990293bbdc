import asyncio
import httpx
import pytest
from telehealth.client.conference import (
    CLOSE_WITHOUT_UPDATING,
    ConferenceSession,
    ReadyState,
    TelehealthApiClient,
)
from telehealth.client.heartbeat import HeartbeatClient

LAUNCH_CONFIG = {
    "roomName": "clinic-appt-APPT-1-0123456789ab",
    "appointmentId": "APPT-1",
    "isModerator": True,
    "enableLobby": True,
}


class FakeWidget:
    def __init__(self, config, log=None):
        self.config = config
        self.listeners = {}
        self.commands = []
        self.disposed = False
        self.log = log if log is not None else []

    def add_listener(self, event, callback):
        self.listeners[event] = callback

    def execute_command(self, command, *args):
        self.commands.append((command, args))

    def dispose(self):
        self.disposed = True
        self.log.append("dispose")


class FakeBackend:
    def __init__(self, provider_ready=False, fail=False):
        self.provider_ready = provider_ready
        self.fail = fail
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        self.requests.append(request)
        action = request.url.params["action"]
        if action == "launch_data":
            return httpx.Response(200, json=LAUNCH_CONFIG)
        if action == "patient_ready_check":
            return httpx.Response(200, json={"providerReady": self.provider_ready})
        if action == "set_status":
            return httpx.Response(200, json={"success": True, "status": request.url.params["status"]})
        return httpx.Response(200, json={"success": True})

    def actions(self):
        return [r.url.params["action"] for r in self.requests]


def _api(backend, patient_portal=False, csrf_token=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend), base_url="http://test")
    return TelehealthApiClient(
        "http://test", "access-token", csrf_token=csrf_token, patient_portal=patient_portal, http=http
    )


async def test_heartbeat_runs_at_interval():
    beats = []

    async def send():
        beats.append(asyncio.get_running_loop().time())

    heartbeat = HeartbeatClient(send, interval=0.01)
    heartbeat.start()
    await asyncio.sleep(0.055)
    heartbeat.stop()

    assert len(beats) >= 3
    assert not heartbeat.running


async def test_heartbeat_survives_failures():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise httpx.ConnectError("down")

    heartbeat = HeartbeatClient(flaky, interval=0.01)
    heartbeat.start()
    await asyncio.sleep(0.05)

    assert heartbeat.running
    assert len(calls) >= 2
    heartbeat.stop()


async def test_heartbeat_start_replaces_running_timer():
    async def send():
        pass

    heartbeat = HeartbeatClient(send, interval=10)
    heartbeat.start()
    first = heartbeat._task
    heartbeat.start()
    await asyncio.sleep(0.01)

    assert first.cancelled()
    assert heartbeat.running
    heartbeat.stop()


async def test_api_client_sends_tokens_and_action():
    backend = FakeBackend()
    api = _api(backend, csrf_token="csrf-value")

    await api.call("heartbeat", appointment_id="APPT-1", ignored=None)

    request = backend.requests[0]
    assert request.url.path == "/api/telehealth"
    assert request.headers["authorization"] == "Bearer access-token"
    assert request.headers["apicsrftoken"] == "csrf-value"
    assert dict(request.url.params) == {"action": "heartbeat", "appointment_id": "APPT-1"}


async def test_portal_client_uses_portal_endpoint():
    backend = FakeBackend()
    await _api(backend, patient_portal=True).call("settings")
    assert backend.requests[0].url.path == "/api/portal/telehealth"


async def test_launch_wires_widget_and_lobby():
    widgets = []
    session = ConferenceSession(_api(FakeBackend()), lambda config: widgets.append(FakeWidget(config)) or widgets[-1])

    config = await session.launch("APPT-1")
    widget = widgets[0]
    assert config["roomName"] == LAUNCH_CONFIG["roomName"]
    assert set(widget.listeners) == {"videoConferenceJoined", "videoConferenceLeft", "readyToClose"}

    widget.listeners["videoConferenceJoined"]()
    assert session.heartbeat.running
    assert widget.commands == [("toggleLobby", (True,))]

    widget.listeners["videoConferenceLeft"]()
    assert not session.heartbeat.running


async def test_second_launch_returns_active_session():
    backend = FakeBackend()
    session = ConferenceSession(_api(backend), FakeWidget)

    await session.launch("APPT-1")
    await session.launch("APPT-1")

    assert backend.actions() == ["launch_data"]


async def test_end_stops_heartbeat_before_dispose():
    log = []
    session = ConferenceSession(_api(FakeBackend()), lambda config: FakeWidget(config, log))
    await session.launch("APPT-1")
    session.on_joined()

    original_stop = session.heartbeat.stop

    def recording_stop():
        log.append("stop")
        original_stop()

    session.heartbeat.stop = recording_stop
    session.end()

    assert log == ["stop", "dispose"]
    assert not session.active
    assert session.widget is None


async def test_provider_end_prompts_for_status():
    prompts = []
    session = ConferenceSession(_api(FakeBackend()), FakeWidget, on_status_prompt=prompts.append)
    await session.launch("APPT-1")

    session.end(show_status_update=True)

    assert prompts == [LAUNCH_CONFIG]


async def test_patient_end_never_prompts():
    prompts = []
    session = ConferenceSession(
        _api(FakeBackend(provider_ready=True), patient_portal=True), FakeWidget, on_status_prompt=prompts.append
    )
    await session.launch("APPT-1")

    session.end(show_status_update=True)

    assert prompts == []


async def test_heartbeat_sends_current_appointment():
    backend = FakeBackend()
    session = ConferenceSession(_api(backend), FakeWidget)
    await session.launch("APPT-1")

    await session._send_heartbeat()

    assert backend.actions() == ["launch_data", "heartbeat"]
    assert backend.requests[-1].url.params["appointment_id"] == "APPT-1"


@pytest.mark.parametrize(
    "provider_ready, expected, launched",
    [(True, ReadyState.READY, True), (False, ReadyState.NOT_READY, False)],
)
async def test_patient_launch_waits_for_provider(provider_ready, expected, launched):
    backend = FakeBackend(provider_ready=provider_ready)
    session = ConferenceSession(_api(backend, patient_portal=True), FakeWidget)

    state = await session.patient_launch("APPT-1")

    assert state is expected
    assert session.active is launched


async def test_patient_launch_when_server_unreachable():
    session = ConferenceSession(_api(FakeBackend(fail=True), patient_portal=True), FakeWidget)

    state = await session.patient_launch("APPT-1")

    assert state is ReadyState.UNAVAILABLE
    assert not session.active


async def test_set_status_close_without_updating():
    backend = FakeBackend()
    session = ConferenceSession(_api(backend), FakeWidget)

    assert await session.set_status("APPT-1", CLOSE_WITHOUT_UPDATING) is None
    assert backend.requests == []

    result = await session.set_status("APPT-1", ">")
    assert result == {"success": True, "status": ">"}
