import json

from chat.core.models import DEFAULT_PREFERENCES
from chat.core.storage import InMemoryStore
from chat.preferences import STORAGE_KEY, PreferenceStore
from chat.surface import HtmlSurface


def test_load_returns_defaults_when_nothing_stored(store):
    prefs = PreferenceStore(store)
    assert prefs.load() == DEFAULT_PREFERENCES
    assert STORAGE_KEY not in store


def test_load_falls_back_to_defaults_on_corrupt_blob():
    prefs = PreferenceStore(InMemoryStore({STORAGE_KEY: "{not json"}))
    assert prefs.load() == DEFAULT_PREFERENCES


def test_load_ignores_non_object_blob():
    prefs = PreferenceStore(InMemoryStore({STORAGE_KEY: "[1, 2]"}))
    assert prefs.load() == DEFAULT_PREFERENCES


def test_load_fills_missing_keys_from_defaults():
    prefs = PreferenceStore(InMemoryStore({STORAGE_KEY: json.dumps({"theme": "dark"})}))
    loaded = prefs.load()
    assert loaded["theme"] == "dark"
    assert loaded["font_size"] == DEFAULT_PREFERENCES["font_size"]


def test_update_merges_and_persists(store):
    prefs = PreferenceStore(store)
    prefs.load()
    result = prefs.update({"theme": "dark"}, font_size=20)
    assert result["theme"] == "dark"
    assert result["font_size"] == 20
    assert result["language"] == "en"
    assert json.loads(store.get(STORAGE_KEY)) == result


def test_update_refreshes_the_surface(store, surface):
    prefs = PreferenceStore(store, view=surface)
    prefs.load()
    prefs.update(theme="dark", font_size=18)
    assert surface.theme == "dark"
    assert "--base-font-size: 18px" in surface.to_html()


def test_reset_is_idempotent(store):
    prefs = PreferenceStore(store)
    prefs.update(theme="dark")
    prefs.reset()
    once = store.get(STORAGE_KEY)
    prefs.reset()
    assert store.get(STORAGE_KEY) == once
    assert json.loads(once) == DEFAULT_PREFERENCES


def test_export_import_round_trip(store):
    source = PreferenceStore(store)
    source.update(theme="dark", voice_output=True)
    blob = source.export()

    target = PreferenceStore(InMemoryStore())
    assert target.import_(blob) is True
    assert target.as_dict() == source.as_dict()


def test_import_rejects_blob_missing_required_keys(store):
    prefs = PreferenceStore(store)
    prefs.load()
    assert prefs.import_(json.dumps({"theme": "dark"})) is False
    assert prefs.get("theme") == "light"
    assert STORAGE_KEY not in store


def test_import_rejects_garbage(store):
    prefs = PreferenceStore(store)
    assert prefs.import_("not json") is False
    assert prefs.import_("[]") is False


def test_voice_output_selects_a_voice_for_the_language(store, speech):
    prefs = PreferenceStore(store, speech=speech)
    prefs.load()
    assert speech.voices == []
    prefs.update(voice_output=True, language="fr")
    assert speech.voices == ["fr"]


def test_as_dict_is_a_copy(store):
    prefs = PreferenceStore(store)
    snapshot = prefs.load()
    snapshot["theme"] = "dark"
    assert prefs.get("theme") == "light"


def test_surface_defaults_to_light_palette():
    surface = HtmlSurface()
    surface.apply_preferences({"theme": "unknown"})
    assert surface.palette["background"] == "#ffffff"
