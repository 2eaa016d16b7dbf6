from audionotes.models.global_settings import GlobalSettings
from audionotes.models.note import Note
from audionotes.models.shortcut_token import ShortcutToken
from audionotes.models.user_category import UserCategory

__all__ = ["GlobalSettings", "Note", "ShortcutToken", "UserCategory"]
