import pytest

from audionotes.core.exceptions import SettingsNotFoundError
from audionotes.models.global_settings import GlobalSettings
from audionotes.services.model_settings import (
    ModelSettings,
    SttSettings,
    SttVariant,
    get_settings_or_default,
    load_model_settings,
    mask_api_key,
    save_model_settings,
    select_stt_settings,
)


def test_missing_settings_raise(db):
    with pytest.raises(SettingsNotFoundError):
        load_model_settings(db)
    assert get_settings_or_default(db) == ModelSettings()


def test_incomplete_document_raises(db):
    db.add(GlobalSettings(type="models", settings_json='{"stt": {"base_url": "http://x"}}'))
    db.commit()
    with pytest.raises(SettingsNotFoundError):
        load_model_settings(db)


def test_saved_settings_are_loaded_back(db):
    payload = ModelSettings.model_validate(
        {
            "stt": {"base_url": "http://stt", "api_key": "k1", "other": {"model_name": "whisper-multi"}},
            "llm": {"base_url": "http://llm", "api_key": "k2", "summarization_model": "big"},
        }
    )
    save_model_settings(db, payload)

    loaded = load_model_settings(db)
    assert loaded.stt.other.model_name == "whisper-multi"
    assert loaded.llm.summarization_model == "big"


@pytest.mark.parametrize("language", [None, "", "en", "EN", "english", "en-GB"])
def test_english_or_missing_language_uses_english_variant(language):
    stt = SttSettings(english=SttVariant(model_name="en-model"), other=SttVariant(model_name="xx-model"))
    chosen = select_stt_settings(stt, language)
    assert chosen.model_name == "en-model"
    assert chosen.language is None


def test_other_language_uses_other_variant_and_forwards_hint():
    stt = SttSettings(english=SttVariant(model_name="en-model"), other=SttVariant(model_name="xx-model", temperature=0.2))
    chosen = select_stt_settings(stt, " fr ")
    assert (chosen.model_name, chosen.temperature, chosen.language) == ("xx-model", 0.2, "fr")


def test_mask_api_key():
    assert mask_api_key("") == ""
    assert mask_api_key("short") == "*****"
    assert mask_api_key("sk-1234567890abcd") == "sk-...abcd"
