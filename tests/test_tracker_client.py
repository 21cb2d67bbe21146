import asyncio
import json

import httpx

from webstack.client.tracking import TRACK_PATH, VisitorTracker


class Recorder:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(self.status_code, json={"success": True})


def test_start_sends_init_then_page_view_and_touches():
    recorder = Recorder()

    async def run():
        tracker = VisitorTracker(
            "http://api.test",
            session_id="s-1",
            first_page="/pricing",
            page_title="Pricing",
            domain="example.com",
            touch_interval=0.01,
            transport=httpx.MockTransport(recorder),
        )
        async with tracker:
            await asyncio.sleep(0.05)
            await tracker.track_page_view("/features")

    asyncio.run(run())

    actions = [payload.get("action") for path, payload in recorder.calls if path == TRACK_PATH]
    assert actions[:2] == ["init", "page_view"]
    assert "touch" in actions
    page_views = [payload["page_path"] for path, payload in recorder.calls if payload.get("action") == "page_view"]
    assert page_views == ["/pricing", "/features"]
    init = recorder.calls[0][1]
    assert init["session_id"] == "s-1"
    assert init["first_page"] == "/pricing"
    assert init["domain"] == "example.com"
    assert recorder.calls[1][1]["page_title"] == "Pricing"


def test_tracking_failures_are_swallowed():
    recorder = Recorder(status_code=500)

    async def run():
        tracker = VisitorTracker("http://api.test", session_id="s-1", transport=httpx.MockTransport(recorder))
        results = [
            await tracker.track_page_view("/"),
            await tracker.track_tool_interaction("seo-audit", metadata={"step": 1}),
            await tracker.track_form_submission("newsletter", {"email": "a@b.co"}),
            await tracker.save_lead("a@b.co", domain="example.com"),
        ]
        await tracker.stop()
        return results

    assert asyncio.run(run()) == [False, False, False, False]
    assert [path for path, _payload in recorder.calls] == [
        TRACK_PATH,
        "/tracking/tool-interactions",
        "/tracking/form-submissions",
        "/tracking/leads",
    ]
    assert recorder.calls[1][1]["metadata"] == {"step": 1}


def test_generates_session_id_when_missing():
    async def run():
        tracker = VisitorTracker("http://api.test", transport=httpx.MockTransport(Recorder()))
        session_id = tracker.session_id
        await tracker.stop()
        return session_id

    millis, suffix = asyncio.run(run()).split("-")
    assert millis.isdigit()
    assert len(suffix) == 9
