"""
RAPID Dispatch Console - Console Store Tests

Run with: pytest tests/test_console_store.py -v
"""

import pytest

from dispatch_console.core.console_store import ConsoleStore
from dispatch_console.core.controller import CallSessionController, create_controller
from dispatch_console.core.exceptions import ConsoleLimitError, ConsoleNotFoundError
from dispatch_console.core.types import LifecycleState
from dispatch_console.services.classifier import DummyEmergencyClassifier
from dispatch_console.services.recognition import DummySpeechRecognizer


class TestConsoleStore:
    """Console registry."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, test_settings):
        store = ConsoleStore(test_settings)

        controller = await store.create()

        assert controller.console_id.startswith("con_")
        assert await store.get(controller.console_id) is controller
        assert await store.list_ids() == [controller.console_id]
        assert len(store) == 1
        await store.close_all()

    @pytest.mark.asyncio
    async def test_consoles_are_independent(self, test_settings):
        store = ConsoleStore(test_settings)
        first = await store.create()
        second = await store.create()

        await first.start_simulation("med-1")

        assert first.state is LifecycleState.ACTIVE
        assert second.state is LifecycleState.IDLE
        assert first.session_id != second.session_id
        await store.close_all()

    @pytest.mark.asyncio
    async def test_capacity_limit(self, test_settings):
        store = ConsoleStore(test_settings)
        for _ in range(test_settings.max_consoles):
            await store.create()

        with pytest.raises(ConsoleLimitError):
            await store.create()
        await store.close_all()

    @pytest.mark.asyncio
    async def test_get_or_raise_unknown(self, test_settings):
        store = ConsoleStore(test_settings)

        with pytest.raises(ConsoleNotFoundError) as exc_info:
            await store.get_or_raise("con_missing")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_remove_closes_controller(self, test_settings, recognizer_factory):
        recognizer = recognizer_factory(interval_seconds=10.0)

        def factory(console_id):
            return CallSessionController(
                classifier=DummyEmergencyClassifier(),
                transcription=None,
                synthesizer=None,
                recognizer=recognizer,
                settings=test_settings,
                console_id=console_id,
            )

        store = ConsoleStore(test_settings, factory=factory)
        controller = await store.create()
        await controller.start_microphone()
        assert recognizer.device_open is True

        assert await store.remove(controller.console_id) is True

        assert recognizer.device_open is False
        assert await store.get(controller.console_id) is None
        assert await store.remove(controller.console_id) is False

    @pytest.mark.asyncio
    async def test_close_all(self, test_settings):
        store = ConsoleStore(test_settings)
        await store.create()
        await store.create()

        assert await store.close_all() == 2
        assert len(store) == 0


class TestCreateController:
    """Settings-driven collaborator wiring."""

    def test_dummy_backends(self, test_settings):
        controller = create_controller(test_settings, console_id="con_test")

        assert controller.console_id == "con_test"
        assert controller.live_capture_available is False

    def test_dummy_recognizer_enables_live_capture(self, test_settings):
        settings = test_settings.model_copy(update={"recognizer_backend": "dummy"})

        controller = create_controller(settings)

        assert controller.live_capture_available is True

    def test_unknown_backends_fall_back(self, test_settings):
        settings = test_settings.model_copy(update={
            "classifier_backend": "quantum",
            "audio_output_backend": "speakers",
            "recognizer_backend": "telepathy",
        })

        controller = create_controller(settings)

        assert isinstance(controller._classifier, DummyEmergencyClassifier)
        assert controller.live_capture_available is False

    def test_dummy_recognizer_type(self, test_settings):
        settings = test_settings.model_copy(update={"recognizer_backend": "dummy"})

        controller = create_controller(settings)

        assert isinstance(controller._recognizer, DummySpeechRecognizer)
