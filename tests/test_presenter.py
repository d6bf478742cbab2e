"""Tests for the Presenter state machine."""

import threading
from dataclasses import replace

from conftest import FakeProvider
from hostinsight.models import Snapshot
from hostinsight.presenter import Error, Loading, Presenter, Success


def with_battery(snapshot: Snapshot, level: int) -> Snapshot:
    return replace(snapshot, power=replace(snapshot.power, level=level))


class TestPresenter:
    def test_initial_state_is_loading(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        assert presenter.view_state == Loading()
        assert presenter.sections == []

    def test_load_publishes_loading_then_success(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        states = []
        presenter.subscribe(lambda state, sections: states.append(state))

        result = presenter.load()

        assert states == [Loading(), Success(snapshot)]
        assert result == Success(snapshot)
        assert presenter.view_state.snapshot is snapshot
        assert len(presenter.sections) == 10

    def test_refresh_requeries_provider(self, snapshot):
        provider = FakeProvider([snapshot])
        presenter = Presenter(provider)
        presenter.load()
        presenter.refresh()
        assert provider.calls == 2

    def test_provider_failure_publishes_error(self):
        presenter = Presenter(FakeProvider(error=MemoryError("out of memory")))
        result = presenter.load()
        assert result == Error("out of memory")
        assert presenter.view_state == Error("out of memory")

    def test_error_without_message_gets_default(self):
        presenter = Presenter(FakeProvider(error=RuntimeError()))
        assert presenter.load() == Error("Unknown error occurred")

    def test_retry_after_error(self, snapshot):
        provider = FakeProvider([snapshot], error=RuntimeError("boom"))
        presenter = Presenter(provider)
        presenter.load()
        provider.error = None

        states = []
        presenter.subscribe(lambda state, sections: states.append(state))
        presenter.refresh()

        assert states == [Loading(), Success(snapshot)]

    def test_toggle_flips_only_target(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        before = presenter.sections

        assert presenter.toggle_section("Overview") is True
        after = presenter.sections

        assert after[0].expanded is False
        assert after[0].items == before[0].items
        assert after[1:] == before[1:]

    def test_toggle_twice_restores(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        before = presenter.sections
        presenter.toggle_section("Power")
        presenter.toggle_section("Power")
        assert presenter.sections == before

    def test_toggle_unknown_title_is_noop(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        before = presenter.sections
        assert presenter.toggle_section("Weather") is False
        assert presenter.sections == before

    def test_toggle_before_first_load_is_noop(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        assert presenter.toggle_section("Overview") is False

    def test_toggle_by_key_for_counted_titles(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        assert presenter.toggle_section("Sensors (3)") is True
        assert presenter.toggle_section("sensors") is True
        assert not next(s for s in presenter.sections if s.key == "sensors").expanded

    def test_refresh_preserves_expansion_and_updates_values(self, snapshot):
        provider = FakeProvider([with_battery(snapshot, 50), with_battery(snapshot, 42)])
        presenter = Presenter(provider)
        presenter.load()

        presenter.toggle_section("Overview")
        presenter.toggle_section("Power")
        presenter.refresh()

        sections = {s.key: s for s in presenter.sections}
        assert sections["overview"].expanded is False
        assert sections["power"].expanded is True
        assert sections["display"].expanded is False
        levels = {i.label: i.value for i in sections["power"].items}
        assert levels["Battery Level"] == "42%"

    def test_toggle_notifies_listeners(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        seen = []
        presenter.subscribe(lambda state, sections: seen.append(sections[0].expanded))
        presenter.toggle_section("Overview")
        assert seen == [False]

    def test_unsubscribe(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        seen = []
        unsubscribe = presenter.subscribe(lambda state, sections: seen.append(state))
        unsubscribe()
        presenter.load()
        assert seen == []

    def test_stale_result_does_not_overwrite_newer(self, snapshot):
        """A slow first request finishing last must not replace the second's result."""
        old, new = with_battery(snapshot, 10), with_battery(snapshot, 90)
        release_first = threading.Event()
        first_started = threading.Event()

        class SlowFirstProvider:
            def __init__(self):
                self.calls = 0

            def collect(self):
                self.calls += 1
                if self.calls == 1:
                    first_started.set()
                    release_first.wait(timeout=5)
                    return old
                return new

            refresh = collect

        presenter = Presenter(SlowFirstProvider())
        first = threading.Thread(target=presenter.load)
        first.start()
        assert first_started.wait(timeout=5)

        presenter.refresh()
        release_first.set()
        first.join(timeout=5)

        assert presenter.view_state == Success(new)
        power = next(s for s in presenter.sections if s.key == "power")
        assert power.items[0].value == "90%"

    def test_toggle_during_refresh_is_kept(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        presenter.load()
        started = threading.Event()
        release = threading.Event()

        class BlockingProvider:
            def refresh(self):
                started.set()
                release.wait(timeout=5)
                return snapshot

            collect = refresh

        presenter._provider = BlockingProvider()
        worker = threading.Thread(target=presenter.refresh)
        worker.start()
        assert started.wait(timeout=5)

        presenter.toggle_section("Display")
        release.set()
        worker.join(timeout=5)

        display = next(s for s in presenter.sections if s.key == "display")
        assert display.expanded is True

    def test_slow_listener_does_not_end_on_stale_state(self, snapshot):
        """A delivery held up in one thread must not land after a newer one."""
        presenter = Presenter(FakeProvider([snapshot]))
        first_delivery = threading.Event()
        release = threading.Event()
        delivered = []

        def listener(state, sections):
            delivered.append(state)
            if len(delivered) == 1:
                first_delivery.set()
                release.wait(timeout=5)

        presenter.subscribe(listener)
        worker = threading.Thread(target=presenter.load)
        worker.start()
        assert first_delivery.wait(timeout=5)

        # Does not wait for the blocked listener
        assert presenter.refresh() == Success(snapshot)
        assert delivered == [Loading()]

        release.set()
        worker.join(timeout=5)

        assert presenter.view_state == Success(snapshot)
        assert delivered == [Loading(), Loading(), Success(snapshot)]

    def test_listener_may_toggle_from_inside_a_notification(self, snapshot):
        presenter = Presenter(FakeProvider([snapshot]))
        seen = []

        def listener(state, sections):
            seen.append(state)
            if isinstance(state, Success) and len(seen) == 2:
                presenter.toggle_section("Power")

        presenter.subscribe(listener)
        presenter.load()

        assert len(seen) == 3
        power = next(s for s in presenter.sections if s.key == "power")
        assert power.expanded is True
