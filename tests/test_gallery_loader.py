"""Tests for the batched gallery preview loader."""
import asyncio
import math
from datetime import datetime

import pytest

from services.gallery_loader import GalleryBatchLoader
from utils.batching import chunked
from utils.exceptions import GalleryServiceError
from utils.request_deduplicator import RequestDeduplicator

PAST = datetime(2024, 5, 1)
FUTURE = datetime(2024, 6, 1)


class Recorder:
    """Fake gallery fetch + sleep that log what the loader does."""

    def __init__(self, make_image, now, images_per_event=5, failures=None):
        self.make_image = make_image
        self.now = now
        self.log = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.images_per_event = images_per_event
        self.failures = dict(failures or {})

    async def fetch(self, event_id):
        self.log.append(("fetch", event_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if self.failures.get(event_id, 0) > 0:
            self.failures[event_id] -= 1
            raise GalleryServiceError(event_id, "Gallery API returned 503", status_code=503)
        return [self.make_image(i) for i in range(self.images_per_event)]

    async def sleep(self, seconds):
        self.log.append(("sleep", seconds))

    def batches(self):
        batches, current = [], []
        for kind, value in self.log:
            if kind == "sleep":
                batches.append(current)
                current = []
            else:
                current.append(value)
        if current:
            batches.append(current)
        return batches

    def loader(self, **kwargs):
        return GalleryBatchLoader(self.fetch, clock=lambda: self.now, sleep=self.sleep, **kwargs)


@pytest.fixture
def new_recorder(make_image, fixed_now):
    def _new_recorder(**kwargs):
        return Recorder(make_image, fixed_now, **kwargs)
    return _new_recorder


class TestChunked:
    """Tests for the partition helper."""

    @pytest.mark.parametrize("n", [0, 1, 2, 3, 4, 7, 9, 10])
    def test_partition_covers_every_item_once(self, n):
        batches = list(chunked(list(range(n)), 3))
        assert len(batches) == math.ceil(n / 3)
        assert all(1 <= len(b) <= 3 for b in batches)
        assert [i for b in batches for i in b] == list(range(n))

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestLoadGalleriesFor:
    """Tests for scheduling and state tracking."""

    @pytest.mark.asyncio
    async def test_seven_past_events_load_in_three_batches(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()
        events = [make_event(f"e{i}", date=PAST) for i in range(7)]

        await loader.load_galleries_for(events, max_events=10)

        assert recorder.batches() == [["e0", "e1", "e2"], ["e3", "e4", "e5"], ["e6"]]
        assert [v for kind, v in recorder.log if kind == "sleep"] == [0.1, 0.1]
        assert recorder.max_in_flight == 3
        assert all(loader.is_loaded(e.id) for e in events)
        assert not any(loader.is_loading(e.id) for e in events)

    @pytest.mark.asyncio
    async def test_only_first_max_events_are_considered(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()
        events = [make_event(f"e{i}", date=PAST) for i in range(12)]

        await loader.load_galleries_for(events, max_events=4)

        assert [v for kind, v in recorder.log if kind == "fetch"] == ["e0", "e1", "e2", "e3"]
        assert not loader.is_loaded("e4")

    @pytest.mark.asyncio
    async def test_upcoming_events_are_not_eligible(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()
        events = [
            make_event("past", date=PAST),
            make_event("future", date=FUTURE),
            make_event("later-today", date=datetime(2024, 5, 15), time="6:00 PM"),
            make_event("this-morning", date=datetime(2024, 5, 15), time="9:00 AM"),
        ]

        await loader.load_galleries_for(events)

        assert recorder.batches() == [["past", "this-morning"]]

    @pytest.mark.asyncio
    async def test_keeps_only_preview_images(self, new_recorder, make_event):
        recorder = new_recorder(images_per_event=5)
        loader = recorder.loader()

        await loader.load_galleries_for([make_event("e1", date=PAST)])

        assert [img.image_id for img in loader.galleries["e1"]] == ["img0", "img1", "img2"]

    @pytest.mark.asyncio
    async def test_empty_gallery_is_loaded_but_not_stored(self, new_recorder, make_event):
        recorder = new_recorder(images_per_event=0)
        loader = recorder.loader()

        await loader.load_galleries_for([make_event("e1", date=PAST)])

        assert loader.is_loaded("e1")
        assert "e1" not in loader.galleries

    @pytest.mark.asyncio
    async def test_loaded_events_are_not_fetched_again(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()
        events = [make_event("e1", date=PAST), make_event("e1", date=PAST), make_event("e2", date=PAST)]

        await loader.load_galleries_for(events)
        await loader.load_galleries_for(events)

        assert [v for kind, v in recorder.log if kind == "fetch"] == ["e1", "e2"]

    @pytest.mark.asyncio
    async def test_nothing_eligible_does_nothing(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()

        await loader.load_galleries_for([make_event("future", date=FUTURE)])
        await loader.load_galleries_for([])

        assert recorder.log == []


class TestFailures:
    """Tests for retry-ability after failed fetches."""

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_event_retryable(self, new_recorder, make_event):
        recorder = new_recorder(failures={"x": 1})
        loader = recorder.loader()
        events = [make_event("a", date=PAST), make_event("x", date=PAST), make_event("b", date=PAST)]

        await loader.load_galleries_for(events)

        assert loader.is_loaded("a") and loader.is_loaded("b")
        assert not loader.is_loaded("x")
        assert not loader.is_loading("x")
        assert "x" not in loader.galleries

        await loader.load_galleries_for(events)

        assert [v for kind, v in recorder.log if kind == "fetch"] == ["a", "x", "b", "x"]
        assert loader.is_loaded("x")
        assert len(loader.galleries["x"]) == 3

    @pytest.mark.asyncio
    async def test_failure_in_one_batch_does_not_stop_later_batches(self, new_recorder, make_event):
        recorder = new_recorder(failures={"e0": 1, "e1": 1, "e2": 1})
        loader = recorder.loader()
        events = [make_event(f"e{i}", date=PAST) for i in range(5)]

        await loader.load_galleries_for(events)

        assert recorder.batches() == [["e0", "e1", "e2"], ["e3", "e4"]]
        assert loader.is_loaded("e3") and loader.is_loaded("e4")
        assert not any(loader.is_loaded(f"e{i}") for i in range(3))


class TestDeduplication:
    """Tests for sharing fetches with other consumers."""

    @pytest.mark.asyncio
    async def test_overlapping_calls_share_in_flight_fetches(self, make_event, make_image, fixed_now):
        calls = []
        started = asyncio.Event()
        gate = asyncio.Event()

        async def fetch(event_id):
            calls.append(event_id)
            started.set()
            await gate.wait()
            return [make_image(1)]

        async def no_sleep(seconds):
            pass

        dedup = RequestDeduplicator()
        first = GalleryBatchLoader(fetch, deduplicator=dedup, clock=lambda: fixed_now, sleep=no_sleep)
        second = GalleryBatchLoader(fetch, deduplicator=dedup, clock=lambda: fixed_now, sleep=no_sleep)
        events = [make_event("e1", date=PAST)]

        tasks = [
            asyncio.create_task(first.load_galleries_for(events)),
            asyncio.create_task(second.load_galleries_for(events)),
        ]
        await started.wait()
        assert first.is_loading("e1") and second.is_loading("e1")

        gate.set()
        await asyncio.gather(*tasks)

        assert calls == ["e1"]
        assert first.galleries["e1"] == second.galleries["e1"]


class TestReset:
    """Tests for reset()."""

    @pytest.mark.asyncio
    async def test_reset_forgets_everything(self, new_recorder, make_event):
        recorder = new_recorder()
        loader = recorder.loader()
        events = [make_event("e1", date=PAST)]

        await loader.load_galleries_for(events)
        loader.reset()

        assert not loader.is_loaded("e1")
        assert loader.galleries == {}

        await loader.load_galleries_for(events)
        assert [v for kind, v in recorder.log if kind == "fetch"] == ["e1", "e1"]

    @pytest.mark.asyncio
    async def test_reset_during_load_discards_in_flight_results(self, make_event, make_image, fixed_now):
        calls = []
        started = asyncio.Event()
        gate = asyncio.Event()

        async def fetch(event_id):
            calls.append(event_id)
            started.set()
            await gate.wait()
            return [make_image(1)]

        async def no_sleep(seconds):
            pass

        loader = GalleryBatchLoader(fetch, clock=lambda: fixed_now, sleep=no_sleep, batch_size=1)
        events = [make_event("e1", date=PAST), make_event("e2", date=PAST)]

        task = asyncio.create_task(loader.load_galleries_for(events))
        await started.wait()
        loader.reset()
        gate.set()
        await task

        assert loader.galleries == {}
        assert not loader.is_loaded("e1") and not loader.is_loading("e1")
        assert calls == ["e1"]

    @pytest.mark.asyncio
    async def test_load_after_reset_survives_stale_completion(self, make_event, make_image, fixed_now):
        started = asyncio.Event()
        gate = asyncio.Event()

        async def fetch(event_id):
            started.set()
            await gate.wait()
            return [make_image(1)]

        loader = GalleryBatchLoader(fetch, clock=lambda: fixed_now)
        events = [make_event("e1", date=PAST)]

        stale = asyncio.create_task(loader.load_galleries_for(events))
        await started.wait()
        loader.reset()
        fresh = asyncio.create_task(loader.load_galleries_for(events))
        gate.set()
        await asyncio.gather(stale, fresh)

        assert loader.is_loaded("e1") and not loader.is_loading("e1")
        assert [img.image_id for img in loader.galleries["e1"]] == ["img1"]

    def test_for_client_shares_deduplicator(self):
        class StubClient:
            deduplicator = RequestDeduplicator()

            async def fetch_gallery_images(self, event_id):
                return []

        client = StubClient()
        loader = GalleryBatchLoader.for_client(client)
        assert loader._deduplicator is client.deduplicator

    def test_invalid_batch_size(self, new_recorder):
        with pytest.raises(ValueError):
            GalleryBatchLoader(new_recorder().fetch, batch_size=0)
