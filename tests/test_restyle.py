"""Tests for the AI restyle gateway and its HTTP client."""

import random
import threading

import pytest

from snapbooth.errors import RestyleCancelled, RestyleFailed, UpstreamUnavailable, ValidationError
from snapbooth.models import STYLES
from snapbooth.services import InferenceClient, RestyleGateway, RestyleState, resolve_style
from snapbooth.services.restyle import ModelLoading

from conftest import FakeSleeper, ScriptedClient, image_size, make_jpeg

RESULT = make_jpeg((512, 512), (0, 128, 255))


def gateway(script, sleeper=None, **kwargs):
    client = ScriptedClient(script)
    options = {"max_attempts": 3, "default_wait": 30.0, "max_wait": 60.0}
    options.update(kwargs)
    return RestyleGateway(client=client, sleeper=sleeper or FakeSleeper(), **options), client


class TestRestyleGateway:
    def test_success_first_try(self):
        gw, client = gateway([RESULT])
        outcome = gw.run(make_jpeg(), STYLES["anime"])
        assert outcome.state is RestyleState.DONE
        assert outcome.attempts == 1
        assert outcome.waits == []
        assert image_size(outcome.image) == (1024, 1024)
        assert image_size(client.inputs[0]) == (512, 512)

    def test_loading_twice_then_success(self):
        log = []
        sleeper = FakeSleeper(log=log)
        gw, _ = gateway([ModelLoading(5.0), ModelLoading(5.0), RESULT], sleeper=sleeper)

        outcome = gw.run(make_jpeg(), STYLES["watercolor"], on_progress=lambda p: log.append(("notify", p)))

        assert outcome.state is RestyleState.DONE
        assert outcome.attempts == 3
        assert sleeper.waits == [5.0, 5.0]
        notifications = [entry[1] for entry in log if entry[0] == "notify"]
        assert len(notifications) == 2
        assert notifications[0]["type"] == "ai-status"
        assert notifications[0]["status"] == "loading"
        assert notifications[0]["style"] == "watercolor"
        assert notifications[0]["waitTime"] == 5.0
        assert [entry[0] for entry in log] == ["notify", "wait", "notify", "wait"]

    def test_always_loading_stops_at_ceiling(self):
        sleeper = FakeSleeper()
        gw, client = gateway([ModelLoading(1.0)], sleeper=sleeper)
        outcome = gw.run(make_jpeg(), STYLES["comic"])
        assert outcome.state is RestyleState.UNAVAILABLE
        assert outcome.attempts == 3
        assert len(client.inputs) == 3
        assert len(sleeper.waits) == 2

    def test_always_loading_raises_unavailable(self):
        gw, _ = gateway([ModelLoading(1.0)])
        with pytest.raises(UpstreamUnavailable) as excinfo:
            gw.restyle(make_jpeg(), STYLES["comic"])
        assert excinfo.value.retryable
        assert excinfo.value.code == "MODEL_LOADING"

    def test_hard_failure_is_not_retried(self):
        sleeper = FakeSleeper()
        gw, client = gateway([RestyleFailed("bad request")], sleeper=sleeper)
        outcome = gw.run(make_jpeg(), STYLES["anime"])
        assert outcome.state is RestyleState.FAILED
        assert outcome.attempts == 1
        assert sleeper.waits == []
        with pytest.raises(RestyleFailed):
            gw.restyle(make_jpeg(), STYLES["anime"])

    def test_unreadable_result_is_a_failure(self):
        gw, _ = gateway([b"not an image"])
        assert gw.run(make_jpeg(), STYLES["anime"]).state is RestyleState.FAILED

    def test_cancel_during_wait(self):
        sleeper = FakeSleeper(cancel_after=1)
        gw, client = gateway([ModelLoading(10.0), RESULT], sleeper=sleeper)
        outcome = gw.run(make_jpeg(), STYLES["anime"], cancel=threading.Event())
        assert outcome.state is RestyleState.CANCELLED
        assert outcome.attempts == 1
        assert len(client.inputs) == 1

    def test_cancel_raises(self):
        gw, _ = gateway([ModelLoading(10.0)], sleeper=FakeSleeper(cancel_after=1))
        with pytest.raises(RestyleCancelled):
            gw.restyle(make_jpeg(), STYLES["anime"], cancel=threading.Event())

    def test_already_cancelled_makes_no_attempt(self):
        cancel = threading.Event()
        cancel.set()
        gw, client = gateway([RESULT])
        assert gw.run(make_jpeg(), STYLES["anime"], cancel=cancel).state is RestyleState.CANCELLED
        assert client.inputs == []

    def test_real_sleeper_wakes_on_cancel(self):
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()
        gw = RestyleGateway(client=ScriptedClient([ModelLoading(30.0)]), max_attempts=3, max_wait=30.0)
        outcome = gw.run(make_jpeg(), STYLES["anime"], cancel=cancel)
        timer.join()
        assert outcome.state is RestyleState.CANCELLED

    def test_wait_defaults_and_cap(self):
        gw, _ = gateway([RESULT], default_wait=30.0, max_wait=45.0)
        assert gw.wait_seconds(None) == 30.0
        assert gw.wait_seconds(0) == 30.0
        assert gw.wait_seconds(12.5) == 12.5
        assert gw.wait_seconds(500) == 45.0

    def test_custom_prompt_replaces_preset(self):
        gw, client = gateway([RESULT])
        gw.run(make_jpeg(), STYLES["anime"], custom_prompt="a knight in armour")
        assert client.prompts == ["a knight in armour"]

    def test_blank_custom_prompt_uses_preset(self):
        gw, client = gateway([RESULT])
        gw.run(make_jpeg(), STYLES["anime"], custom_prompt="  ")
        assert client.prompts == [STYLES["anime"].prompt]


class TestResolveStyle:
    def test_known_key(self):
        assert resolve_style("cyberpunk").key == "cyberpunk"

    def test_case_insensitive(self):
        assert resolve_style(" Vintage ").key == "vintage"

    @pytest.mark.parametrize("key", ["random", "surprise", "", None])
    def test_random_keys(self, key):
        assert resolve_style(key, random.Random(1)).key in STYLES

    def test_random_is_reproducible_with_seed(self):
        picks = [resolve_style("surprise", random.Random(42)).key for _ in range(3)]
        assert len(set(picks)) == 1

    def test_unknown_key(self):
        with pytest.raises(ValidationError):
            resolve_style("pixelart")

    def test_style_table_is_read_only(self):
        with pytest.raises(TypeError):
            STYLES["new"] = STYLES["anime"]


class FakeResponse:
    def __init__(self, status_code, content=b"", headers=None, json_body=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self._json = json_body

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


class TestInferenceClient:
    def make(self, response):
        session = FakeSession(response)
        return InferenceClient(api_url="https://infer.example/models/", api_token="tok", session=session), session

    def test_image_response(self):
        client, session = self.make(FakeResponse(200, RESULT, {"content-type": "image/jpeg"}))
        assert client.generate(b"img", STYLES["anime"], "prompt") == RESULT
        url, kwargs = session.calls[0]
        assert url == f"https://infer.example/models/{STYLES['anime'].model}"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["json"]["inputs"] == "prompt"
        assert kwargs["json"]["parameters"]["negative_prompt"] == STYLES["anime"].negative_prompt

    def test_loading_with_json_estimate(self):
        client, _ = self.make(FakeResponse(503, json_body={"error": "loading", "estimated_time": 20.5}))
        with pytest.raises(ModelLoading) as excinfo:
            client.generate(b"img", STYLES["anime"], "p")
        assert excinfo.value.estimated_wait == 20.5

    def test_loading_with_header_estimate(self):
        client, _ = self.make(FakeResponse(503, headers={"x-wait-estimated-time": "12"}))
        with pytest.raises(ModelLoading) as excinfo:
            client.generate(b"img", STYLES["anime"], "p")
        assert excinfo.value.estimated_wait == 12.0

    def test_loading_without_estimate(self):
        client, _ = self.make(FakeResponse(503))
        with pytest.raises(ModelLoading) as excinfo:
            client.generate(b"img", STYLES["anime"], "p")
        assert excinfo.value.estimated_wait is None

    def test_other_error_fails(self):
        client, _ = self.make(FakeResponse(400, b"bad input"))
        with pytest.raises(RestyleFailed):
            client.generate(b"img", STYLES["anime"], "p")

    def test_non_image_body_fails(self):
        client, _ = self.make(FakeResponse(200, b"{}", {"content-type": "application/json"}))
        with pytest.raises(RestyleFailed):
            client.generate(b"img", STYLES["anime"], "p")
