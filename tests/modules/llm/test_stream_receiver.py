"""
StreamReceiver 与 OpenAIClient 辅助函数测试
"""

import asyncio

import pytest

from hoshino.modules.config import LLMClientConfig
from hoshino.modules.llm import (
    OpenAIClient,
    StreamCancelledError,
    StreamOptions,
    StreamReceiver,
    TransportError,
    normalize_base_url,
)

from tests.mocks import FakeStreamingClient


class Recorder:
    """同时记录三个回调"""

    def __init__(self):
        self.deltas = []
        self.completed = []
        self.errors = []

    def on_delta(self, delta):
        self.deltas.append(delta)

    async def on_complete(self, full_text):
        self.completed.append(full_text)

    def on_error(self, error):
        self.errors.append(error)

    async def send(self, receiver, **kwargs):
        await receiver.send([{"role": "user", "content": "hi"}], self.on_delta, self.on_complete, self.on_error, **kwargs)


# =============================================================================
# StreamReceiver
# =============================================================================


@pytest.mark.asyncio
async def test_deltas_then_complete():
    recorder = Recorder()
    await recorder.send(StreamReceiver(FakeStreamingClient(["你", "好", "\n呀"])))

    assert recorder.deltas == ["你", "好", "\n呀"]
    assert recorder.completed == ["你好\n呀"]
    assert recorder.errors == []


@pytest.mark.asyncio
async def test_empty_stream_completes_with_empty_text():
    recorder = Recorder()
    await recorder.send(StreamReceiver(FakeStreamingClient([])))

    assert recorder.completed == [""]


@pytest.mark.asyncio
async def test_transport_error_reported_once():
    recorder = Recorder()
    await recorder.send(StreamReceiver(FakeStreamingClient(["一", "二"], fail_after=1, error_message="HTTP 500")))

    assert recorder.deltas == ["一"]
    assert recorder.completed == []
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], TransportError)
    assert str(recorder.errors[0]) == "HTTP 500"


@pytest.mark.asyncio
async def test_unexpected_error_wrapped_as_transport_error():
    recorder = Recorder()
    client = FakeStreamingClient(["你好\n", "二"], fail_after=1, error_message="bad chunk", error_type=ValueError)
    await recorder.send(StreamReceiver(client))

    assert recorder.deltas == ["你好\n"]
    assert recorder.completed == []
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], TransportError)
    assert str(recorder.errors[0]) == "bad chunk"
    assert isinstance(recorder.errors[0].__cause__, ValueError)


@pytest.mark.asyncio
async def test_failing_delta_callback_ends_turn_once():
    recorder = Recorder()

    def on_delta(delta):
        raise RuntimeError("render failed")

    recorder.on_delta = on_delta
    await recorder.send(StreamReceiver(FakeStreamingClient(["一", "二"])))

    assert recorder.completed == []
    assert len(recorder.errors) == 1
    assert str(recorder.errors[0]) == "render failed"


@pytest.mark.asyncio
async def test_cancellation_reported_as_error():
    stop_event = asyncio.Event()
    stop_event.set()
    recorder = Recorder()
    await recorder.send(StreamReceiver(FakeStreamingClient(["一", "二"])), stop_event=stop_event)

    assert recorder.deltas == []
    assert recorder.completed == []
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], StreamCancelledError)


@pytest.mark.asyncio
async def test_cancellation_stops_delta_delivery():
    stop_event = asyncio.Event()
    recorder = Recorder()

    def on_delta(delta):
        recorder.deltas.append(delta)
        stop_event.set()

    recorder.on_delta = on_delta
    await recorder.send(StreamReceiver(FakeStreamingClient(["一", "二", "三"])), stop_event=stop_event)

    assert recorder.deltas == ["一"]
    assert isinstance(recorder.errors[0], StreamCancelledError)


@pytest.mark.asyncio
async def test_max_output_tokens_forwarded():
    client = FakeStreamingClient(["x"])
    await Recorder().send(StreamReceiver(client), options=StreamOptions(max_output_tokens=128))

    assert client.calls[0]["max_tokens"] == 128


def test_stream_options_validation():
    with pytest.raises(ValueError):
        StreamOptions(max_output_tokens=0)


# =============================================================================
# OpenAIClient
# =============================================================================


@pytest.mark.parametrize(
    "base_url, expected",
    [
        ("https://api.example.com/v1", "https://api.example.com/v1"),
        ("https://api.example.com/v1/", "https://api.example.com/v1"),
        ("https://api.example.com/v1/chat/completions", "https://api.example.com/v1"),
        ("https://api.example.com/v1/chat/completions/", "https://api.example.com/v1"),
        (None, None),
        ("", None),
    ],
)
def test_normalize_base_url(base_url, expected):
    assert normalize_base_url(base_url) == expected


@pytest.mark.asyncio
async def test_openai_client_construction():
    client = OpenAIClient(
        LLMClientConfig(model="test-model", api_key="sk-test", base_url="https://api.example.com/v1/chat/completions")
    )
    assert client.model == "test-model"
    assert str(client.client.base_url).rstrip("/") == "https://api.example.com/v1"
    await client.cleanup()
