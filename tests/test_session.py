from multilingo.hints import Tone
from multilingo.session import SessionStore
from multilingo.structures import TaskState


def test_defaults_preselect_english_and_three_targets(catalog):
    store = SessionStore.with_defaults(catalog)
    assert store.source_language.code == "en"
    assert [language.code for language in store.target_languages] == ["es", "fr", "ja"]
    assert store.batch is None
    assert store.elapsed_ms is None


def test_start_batch_creates_one_pending_task_per_language(make_store, catalog):
    store = make_store(targets=("es", "fr", "ja"))
    generation = store.start_batch(store.target_languages)
    assert store.generation == generation
    assert [task.code for task in store.tasks] == ["es", "fr", "ja"]
    assert all(task.state is TaskState.PENDING for task in store.tasks)
    assert store.is_translating
    assert store.elapsed_ms is None


def test_start_batch_collapses_duplicate_codes(make_store, catalog):
    store = make_store()
    spanish = catalog.get("es")
    store.start_batch([spanish, spanish, catalog.get("fr")])
    assert [task.code for task in store.tasks] == ["es", "fr"]


def test_status_is_monotonic(make_store):
    store = make_store()
    generation = store.start_batch(store.target_languages)
    assert store.update_task("es", TaskState.IN_FLIGHT, generation=generation)
    assert store.update_task("es", TaskState.SUCCEEDED, generation=generation, text="Hola")
    assert not store.update_task("es", TaskState.FAILED, generation=generation, error="late")
    assert not store.update_task("es", TaskState.IN_FLIGHT, generation=generation)
    task = store.task("es")
    assert task.state is TaskState.SUCCEEDED
    assert task.text == "Hola"
    assert task.error is None


def test_stale_generation_is_ignored(make_store):
    store = make_store()
    old = store.start_batch(store.target_languages)
    new = store.start_batch(store.target_languages)
    assert not store.update_task("es", TaskState.SUCCEEDED, generation=old, text="stale")
    assert store.task("es").state is TaskState.PENDING
    assert store.update_task("es", TaskState.SUCCEEDED, generation=new, text="fresh")
    assert store.task("es").text == "fresh"


def test_unknown_code_is_a_noop(make_store):
    store = make_store()
    generation = store.start_batch(store.target_languages)
    assert not store.update_task("de", TaskState.SUCCEEDED, generation=generation, text="x")
    assert [task.code for task in store.tasks] == ["es", "fr"]


def test_elapsed_is_recorded_only_when_every_task_settles(make_store, clock):
    store = make_store(clock=clock)
    generation = store.start_batch(store.target_languages)
    clock.advance(1.5)
    assert not store.finish_batch()
    store.update_task("es", TaskState.FAILED, generation=generation, error="rate limited")
    assert store.elapsed_ms is None
    clock.advance(0.5)
    store.update_task("fr", TaskState.SUCCEEDED, generation=generation, text="Bonjour")
    assert store.elapsed_ms == 2000.0
    assert store.is_settled
    assert not store.is_translating
    # A second finish keeps the first measurement.
    clock.advance(3)
    assert not store.finish_batch()
    assert store.elapsed_ms == 2000.0


def test_toggle_adds_and_removes_targets(make_store, catalog):
    store = make_store(targets=("es",))
    assert store.toggle_target_language(catalog.get("de"))
    assert [language.code for language in store.target_languages] == ["es", "de"]
    assert not store.toggle_target_language(catalog.get("es"))
    assert [language.code for language in store.target_languages] == ["de"]


def test_toggle_off_drops_task_mid_batch_and_may_settle_it(make_store, catalog, clock):
    store = make_store(clock=clock)
    generation = store.start_batch(store.target_languages)
    store.update_task("es", TaskState.IN_FLIGHT, generation=generation)
    store.update_task("fr", TaskState.SUCCEEDED, generation=generation, text="Bonjour")
    assert store.elapsed_ms is None

    store.toggle_target_language(catalog.get("es"))

    assert store.task("es") is None
    assert store.is_settled
    assert store.elapsed_ms is not None
    assert not store.update_task("es", TaskState.SUCCEEDED, generation=generation, text="Hola")


def test_toggle_on_does_not_create_task(make_store, catalog):
    store = make_store()
    store.start_batch(store.target_languages)
    store.toggle_target_language(catalog.get("de"))
    assert store.task("de") is None


def test_clear_batch_drops_tasks_and_timing(make_store):
    store = make_store()
    generation = store.start_batch(store.target_languages)
    for code in ("es", "fr"):
        store.update_task(code, TaskState.SUCCEEDED, generation=generation, text=code)
    store.clear_batch()
    assert store.tasks == ()
    assert store.elapsed_ms is None
    assert not store.is_translating


def test_detected_language_is_recorded_on_batch(make_store, catalog):
    store = make_store(source=None)
    store.start_batch(store.target_languages)
    store.set_detected_language(catalog.get("fr"))
    assert store.detected_language.code == "fr"
    assert store.batch.detected_language.code == "fr"


def test_listeners_receive_events_and_can_unsubscribe(make_store):
    store = make_store()
    events = []
    unsubscribe = store.subscribe(lambda _store, event: events.append(event))
    store.set_source_text("Hi")
    unsubscribe()
    store.set_source_text("Bye")
    assert events == ["source_text"]


def test_failing_listener_does_not_break_mutation(make_store):
    store = make_store()

    def broken(_store, _event):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.set_source_text("still applied")
    assert store.source_text == "still applied"


def test_credential_prompt(make_store):
    store = make_store(api_key="")
    assert not store.has_credential
    store.request_credential()
    assert store.credential_prompt_open
    store.set_api_key("key")
    assert store.has_credential
    assert not store.credential_prompt_open


def test_options(make_store):
    store = make_store()
    store.set_tone("formal")
    store.set_context("legal")
    store.set_preserve_terms(["ACME", "", "ACME"])
    assert store.options.tone is Tone.FORMAL
    assert store.options.context == "legal"
    assert store.options.preserve_terms == ("ACME",)


def test_immersive_display_flags(make_store):
    store = make_store()
    store.open_immersive_display()
    assert store.immersive_open and store.immersive_auto_close
    store.set_immersive_display(True)
    assert store.immersive_open and not store.immersive_auto_close
    store.dismiss_immersive_display()
    assert not store.immersive_open


def test_stats(make_store):
    store = make_store(text="  Hello brave new world ")
    generation = store.start_batch(store.target_languages)
    store.update_task("es", TaskState.SUCCEEDED, generation=generation, text="Hola")
    stats = store.stats()
    assert stats.word_count == 4
    assert stats.char_count == len("  Hello brave new world ")
    assert stats.completed == 1
    assert stats.settled == 1
    assert stats.total == 2
    assert stats.progress == 0.5
    assert stats.elapsed_ms is None
