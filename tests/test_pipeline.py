"""批处理：失败隔离、进度回调、超时、取消与会话生命周期。"""

from __future__ import annotations

import asyncio
import io
import time

import pytest
from PIL import Image

from mosaic_merge.core.config import MosaicConfig
from mosaic_merge.core.exceptions import (
    BatchInProgressError,
    DecodeError,
    EncodeError,
    GroupTimeoutError,
    InvalidConfigurationError,
    ProcessingAborted,
)
from mosaic_merge.core.progress import ProgressUpdate
from mosaic_merge.core.session import BatchSession
from mosaic_merge.processing import compositor
from mosaic_merge.processing.pipeline import CancellationToken, run_batch


def make_group(make_raw, key: str, size=(12, 8)) -> list:
    return [make_raw(f"{key}-{n}.png", size, "blue") for n in range(1, 5)]


def test_corrupt_group_does_not_affect_valid_group(make_raw, corrupt_raw) -> None:
    g1 = [make_raw("G1-1.png"), corrupt_raw("G1-2.png"), make_raw("G1-3.png"), make_raw("G1-4.png")]
    g2 = make_group(make_raw, "G2")

    result = asyncio.run(run_batch({"G1": g1, "G2": g2}))

    assert result.failed_keys() == ["G1"]
    assert result.succeeded_keys() == ["G2"]
    failure = result.failures[0]
    assert isinstance(failure.error, DecodeError)
    assert failure.status == "error-decode"
    assert "G1-2.png" in failure.message


def test_progress_called_once_per_group_even_on_failure(make_raw, corrupt_raw) -> None:
    groups = {
        "A": make_group(make_raw, "A"),
        "B": [corrupt_raw(f"B-{n}.png") for n in range(1, 5)],
        "C": make_group(make_raw, "C"),
    }
    updates: list[ProgressUpdate] = []

    asyncio.run(run_batch(groups, progress_callback=updates.append))

    assert [u.completed for u in updates] == [1, 2, 3]
    assert {u.total for u in updates} == {3}
    assert [u.message for u in updates] == ["A", "B", "C"]
    assert [u.status for u in updates] == ["ok", "failed", "ok"]


def test_empty_batch_returns_empty_result() -> None:
    updates: list[ProgressUpdate] = []

    result = asyncio.run(run_batch({}, progress_callback=updates.append))

    assert result.total == 0
    assert updates == []


def test_rerun_produces_same_layout(make_raw) -> None:
    groups = {"R": [make_raw(f"R-{n}.png", (10 + n, 20 - n), "green") for n in range(1, 5)]}

    first = asyncio.run(run_batch(groups))
    second = asyncio.run(run_batch(groups))

    assert first.artifacts[0].size == second.artifacts[0].size == (28, 38)
    assert first.artifacts[0].source_names == second.artifacts[0].source_names
    with Image.open(io.BytesIO(first.artifacts[0].image_bytes)) as a, Image.open(
        io.BytesIO(second.artifacts[0].image_bytes)
    ) as b:
        assert a.size == b.size


def test_unexpected_exception_is_recorded(make_raw, monkeypatch) -> None:
    async def boom(group_key, files, config=None):
        raise RuntimeError("kaboom")

    monkeypatch.setattr("mosaic_merge.processing.pipeline.composite_group", boom)

    result = asyncio.run(run_batch({"X": make_group(make_raw, "X")}))

    assert result.failures[0].status == "error-unexpected"
    assert result.failures[0].message == "kaboom"


def test_stalled_group_times_out_and_batch_continues(make_raw, monkeypatch) -> None:
    original = compositor.composite_group

    async def maybe_stall(group_key, files, config=None):
        if group_key == "SLOW":
            await asyncio.sleep(10)
        return await original(group_key, files, config)

    monkeypatch.setattr("mosaic_merge.processing.pipeline.composite_group", maybe_stall)
    groups = {"SLOW": make_group(make_raw, "SLOW"), "FAST": make_group(make_raw, "FAST")}

    result = asyncio.run(run_batch(groups, MosaicConfig(group_timeout=0.05)))

    assert result.failed_keys() == ["SLOW"]
    assert isinstance(result.failures[0].error, GroupTimeoutError)
    assert result.failures[0].status == "error-timeout"
    assert result.succeeded_keys() == ["FAST"]


def test_cancellation_between_groups(make_raw) -> None:
    token = CancellationToken()
    groups = {"A": make_group(make_raw, "A"), "B": make_group(make_raw, "B")}

    def cancel_after_first(update: ProgressUpdate) -> None:
        token.cancel()

    with pytest.raises(ProcessingAborted):
        asyncio.run(run_batch(groups, progress_callback=cancel_after_first, cancel_token=token))


def test_invalid_config_is_rejected() -> None:
    with pytest.raises(InvalidConfigurationError):
        asyncio.run(run_batch({}, MosaicConfig(quality=1.5)))


def test_session_select_resets_previous_state(make_raw) -> None:
    session = BatchSession()
    session.select(make_group(make_raw, "OLD"))
    asyncio.run(session.run())
    assert session.result is not None and session.result.succeeded_keys() == ["OLD"]

    groups = session.select([*make_group(make_raw, "NEW"), make_raw("LONE.png")])

    assert session.result is None
    assert list(groups) == ["NEW", "LONE.png"]
    assert list(session.valid_groups()) == ["NEW"]
    assert [notice.group_key for notice in session.incomplete_groups()] == ["LONE.png"]

    result = asyncio.run(session.run())
    assert result.succeeded_keys() == ["NEW"]


def test_session_rejects_concurrent_runs(make_raw) -> None:
    session = BatchSession()
    session.select(make_group(make_raw, "A"))

    async def run_twice():
        first = asyncio.ensure_future(session.run())
        await asyncio.sleep(0)
        assert session.running
        with pytest.raises(BatchInProgressError):
            await session.run()
        with pytest.raises(BatchInProgressError):
            session.reset()
        return await first

    result = asyncio.run(run_twice())

    assert result.succeeded_keys() == ["A"]
    assert not session.running


def test_session_cancel_stops_remaining_groups(make_raw) -> None:
    session = BatchSession()
    session.select([*make_group(make_raw, "A"), *make_group(make_raw, "B")])

    with pytest.raises(ProcessingAborted):
        asyncio.run(session.run(lambda update: session.cancel()))

    assert session.result is None
    assert not session.running


def test_encode_failure_is_recorded_and_batch_continues(make_raw, monkeypatch) -> None:
    original = compositor.encode_surface

    def failing_encode(surface, image_format="JPEG", quality=95):
        if surface.size == (48, 32):
            raise EncodeError("画布编码失败 (JPEG): disk full")
        return original(surface, image_format, quality)

    monkeypatch.setattr(compositor, "encode_surface", failing_encode)
    groups = {"BIG": make_group(make_raw, "BIG", size=(24, 16)), "OK": make_group(make_raw, "OK")}
    updates: list[ProgressUpdate] = []

    result = asyncio.run(run_batch(groups, progress_callback=updates.append))

    assert result.failed_keys() == ["BIG"]
    assert result.failures[0].status == "error-encode"
    assert isinstance(result.failures[0].error, EncodeError)
    assert result.succeeded_keys() == ["OK"]
    assert [u.completed for u in updates] == [1, 2]


def test_timed_out_group_releases_decodes_before_next_group(make_raw, monkeypatch) -> None:
    events: list[tuple[str, str]] = []
    slow_images: list[Image.Image] = []
    original = compositor.decode_image

    def slow_decode(raw, *args):
        events.append(("start", raw.name))
        if raw.name.startswith("SLOW"):
            time.sleep(0.3)
        img = original(raw, *args)
        if raw.name.startswith("SLOW"):
            slow_images.append(img)
        events.append(("end", raw.name))
        return img

    monkeypatch.setattr(compositor, "decode_image", slow_decode)
    groups = {"SLOW": make_group(make_raw, "SLOW"), "FAST": make_group(make_raw, "FAST")}

    result = asyncio.run(run_batch(groups, MosaicConfig(group_timeout=0.1)))

    assert result.failed_keys() == ["SLOW"]
    assert result.succeeded_keys() == ["FAST"]
    last_slow_end = max(i for i, (kind, name) in enumerate(events) if kind == "end" and name.startswith("SLOW"))
    first_fast_start = min(i for i, (kind, name) in enumerate(events) if kind == "start" and name.startswith("FAST"))
    assert last_slow_end < first_fast_start
    assert len(slow_images) == 4
    for img in slow_images:
        with pytest.raises((ValueError, AttributeError)):
            img.getpixel((0, 0))
