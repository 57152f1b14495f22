"""Tests for story_generation.studio: the host controller's stage machine."""

import asyncio
import re

import pytest

from card_stack import EventKind, SceneState
from clients.errors import GenerationError
from clients.media import ImageBlob
from clients.story_store_client import StoredScene, StoredStory, StorySummary
from clients.video_client import VideoStatus, VideoTaskStatus
from story_generation.errors import ValidationError
from story_generation.session import SessionContext
from story_generation.studio import Stage, StoryStudio


class FakeImageClient:
    def __init__(self, fail_index=None):
        self.fail_index = fail_index
        self.prompts = []

    async def generate(self, prompt, reference_image=None):
        index = int(re.search(r"Scene (\d+) of", prompt).group(1)) - 1
        self.prompts.append(prompt)
        if index == self.fail_index:
            raise GenerationError("Your request was rejected by the safety system")
        return ImageBlob(f"image-{index}".encode())


class GatedImageClient(FakeImageClient):
    """Holds each scene request until the test releases it."""

    def __init__(self, fail_index=None):
        super().__init__(fail_index)
        self.gates = {}
        self.requested = []
        self.cancelled = []

    def _gate(self, index):
        return self.gates.setdefault(index, asyncio.Event())

    async def generate(self, prompt, reference_image=None):
        index = int(re.search(r"Scene (\d+) of", prompt).group(1)) - 1
        self.requested.append(index)
        try:
            await self._gate(index).wait()
        except asyncio.CancelledError:
            self.cancelled.append(index)
            raise
        return await super().generate(prompt, reference_image)

    def release_all(self):
        for index in range(5):
            self._gate(index).set()


async def _until(condition):
    for _ in range(100):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class FakeStore:
    def __init__(self):
        self.saved = []
        self.stories = {
            "story-1": StoredStory(
                id="story-1",
                prompt="A tiny dragon",
                scenes=[StoredScene(ImageBlob(f"stored-{i}".encode()), f"caption {i}") for i in range(5)],
            ),
        }

    async def save(self, prompt, scenes):
        self.saved.append((prompt, list(scenes)))
        return "new-story"

    async def list(self):
        return [StorySummary(id="story-1", prompt="A tiny dragon", created_at="2024-01-01T00:00:00")]

    async def load(self, story_id):
        if story_id not in self.stories:
            raise GenerationError("Story not found", 404)
        return self.stories[story_id]


class FakeVideoClient:
    async def start(self, image, prompt_text=""):
        return image.data.decode()

    async def poll(self, task_id):
        return VideoTaskStatus(VideoStatus.SUCCEEDED, output_url=f"https://v/{task_id}.mp4")


def _studio(image_client=None, store=None, openai_key="sk-test", runway_key=""):
    session = SessionContext(openai_key=openai_key, runway_key=runway_key)
    image_client = image_client or FakeImageClient()
    store = store or FakeStore()
    return StoryStudio(
        session,
        image_client_factory=lambda s: image_client,
        video_client_factory=lambda s: FakeVideoClient(),
        store_factory=lambda s: store,
    )


class TestGenerate:
    def test_success_shows_output(self):
        studio = _studio()
        assert asyncio.run(studio.generate("A robot painter")) is True
        assert studio.stage is Stage.OUTPUT
        assert studio.stack.is_complete()
        assert studio.prompt == "A robot painter"
        assert studio.generating is False
        assert studio.error is None

    @pytest.mark.parametrize("prompt, key", [("", "sk"), ("   ", "sk"), ("idea", "")])
    def test_validation_changes_nothing(self, prompt, key):
        studio = _studio(openai_key=key)
        with pytest.raises(ValidationError):
            asyncio.run(studio.generate(prompt))
        assert studio.stage is Stage.INPUT
        assert studio.stack.generation == 0
        assert studio.generating is False

    def test_failed_scene_returns_to_input(self):
        studio = _studio(FakeImageClient(fail_index=3))
        assert asyncio.run(studio.generate("idea")) is False
        assert studio.stage is Stage.INPUT
        assert studio.error == "Your request was rejected by the safety system"
        assert studio.stack.scenes == []
        assert studio.generating is False

    def test_unreadable_reference_photo_changes_nothing(self):
        image_client = FakeImageClient()
        studio = _studio(image_client)
        studio.session.reference_images = [ImageBlob(b"corrupt"), ImageBlob(b"also corrupt")]
        with pytest.raises(ValidationError, match="could not be read"):
            asyncio.run(studio.generate("idea"))
        assert studio.stage is Stage.INPUT
        assert studio.error is None
        assert studio.generating is False
        assert studio.stack.generation == 0
        assert image_client.prompts == []

    def test_failure_after_external_reset_is_ignored(self):
        image_client = GatedImageClient(fail_index=2)
        studio = _studio(image_client)

        async def scenario():
            running = asyncio.create_task(studio.generate("idea"))
            await _until(lambda: len(image_client.requested) == 5)
            studio.stack.initialize(2)
            image_client.release_all()
            return await running

        assert asyncio.run(scenario()) is False
        assert studio.error is None
        assert studio.generating is False
        assert len(studio.stack.scenes) == 2

    def test_sample_fills_draft(self):
        image_client = FakeImageClient()
        studio = _studio(image_client)
        assert studio.use_sample("Underwater city") == "Discovering a hidden city beneath the ocean"
        asyncio.run(studio.generate())
        assert "Discovering a hidden city beneath the ocean." in image_client.prompts[0]

    def test_unknown_sample(self):
        with pytest.raises(ValidationError):
            _studio().use_sample("Pirates")

    def test_sample_list(self):
        assert len(_studio().sample_stories()) == 5


class TestCreateNew:
    def test_resets_to_input(self):
        studio = _studio()
        asyncio.run(studio.generate("idea"))
        studio.stack.begin_drag(0, 300.0)
        studio.create_new()
        assert studio.stage is Stage.INPUT
        assert studio.stack.scenes == []
        assert studio.stack.end_drag() is None
        assert studio.prompt == ""

    def test_cancels_the_running_story(self):
        image_client = GatedImageClient()
        studio = _studio(image_client)

        async def scenario():
            first = asyncio.create_task(studio.generate("old idea"))
            await _until(lambda: len(image_client.requested) == 5)
            studio.create_new()
            assert studio.generating is False
            second = asyncio.create_task(studio.generate("new idea"))
            await _until(lambda: len(image_client.requested) == 10)
            image_client.release_all()
            return await first, await second

        first, second = asyncio.run(scenario())
        assert first is False
        assert second is True
        assert sorted(image_client.cancelled) == [0, 1, 2, 3, 4]
        assert studio.prompt == "new idea"
        assert studio.stack.is_complete()
        assert studio.generating is False
        assert studio.error is None

    def test_failure_of_discarded_story_keeps_loaded_story(self):
        image_client = GatedImageClient(fail_index=4)
        studio = _studio(image_client)

        async def scenario():
            running = asyncio.create_task(studio.generate("idea"))
            await _until(lambda: len(image_client.requested) == 5)
            studio.create_new()
            assert await studio.load_story("story-1") is True
            image_client.release_all()
            return await running

        assert asyncio.run(scenario()) is False
        assert studio.stage is Stage.OUTPUT
        assert studio.error is None
        assert studio.story_id == "story-1"
        assert [s.state for s in studio.stack.scenes] == [SceneState.READY] * 5
        assert studio.stack.scenes[0].image == ImageBlob(b"stored-0")


class TestPersistence:
    def test_save_requires_complete_story(self):
        studio = _studio()
        with pytest.raises(ValidationError):
            asyncio.run(studio.save_story())

    def test_save_sends_every_scene(self):
        store = FakeStore()
        studio = _studio(store=store)
        asyncio.run(studio.generate("idea"))

        assert asyncio.run(studio.save_story()) == "new-story"
        prompt, scenes = store.saved[0]
        assert prompt == "idea"
        assert len(scenes) == 5
        assert scenes[4][0] == ImageBlob(b"image-4")
        assert scenes[4][1].endswith("The end.")

    def test_list(self):
        stories = asyncio.run(_studio().list_stories())
        assert [s.id for s in stories] == ["story-1"]

    def test_load_replays_through_the_stack(self):
        studio = _studio()
        events = []
        studio.stack.subscribe(events.append)

        assert asyncio.run(studio.load_story("story-1")) is True

        assert studio.stage is Stage.OUTPUT
        assert studio.prompt == "A tiny dragon"
        assert [e.kind for e in events] == [EventKind.RESET] + [EventKind.CONTENT] * 5
        assert all(s.state is SceneState.READY for s in studio.stack.scenes)
        assert studio.stack.scenes[3].caption == "caption 3"

    def test_load_while_generating_replaces_the_running_story(self):
        image_client = GatedImageClient(fail_index=0)
        studio = _studio(image_client)

        async def scenario():
            running = asyncio.create_task(studio.generate("idea"))
            await _until(lambda: len(image_client.requested) == 5)
            assert await studio.load_story("story-1") is True
            assert studio.generating is False
            await _until(lambda: len(image_client.cancelled) == 5)
            image_client.release_all()
            return await running

        assert asyncio.run(scenario()) is False
        assert studio.error is None
        assert studio.prompt == "A tiny dragon"
        assert studio.stack.is_complete()
        assert sorted(image_client.cancelled) == [0, 1, 2, 3, 4]

    def test_load_missing_story_records_error(self):
        studio = _studio()
        assert asyncio.run(studio.load_story("nope")) is False
        assert studio.error == "Story not found"
        assert studio.stage is Stage.INPUT


class TestVideos:
    def test_requires_runway_key(self):
        studio = _studio()
        asyncio.run(studio.generate("idea"))
        with pytest.raises(ValidationError, match="Runway API key is required"):
            asyncio.run(studio.generate_videos())

    def test_requires_scenes(self):
        with pytest.raises(ValidationError):
            asyncio.run(_studio(runway_key="rw").generate_videos())

    def test_generates_one_video_per_scene(self):
        studio = _studio(runway_key="rw")
        asyncio.run(studio.generate("idea"))
        videos = asyncio.run(studio.generate_videos())
        assert videos == {i: f"https://v/image-{i}.mp4" for i in range(5)}
        assert studio.videos == videos
        assert studio.generating_videos is False
