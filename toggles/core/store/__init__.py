from toggles.core.store.definition import ToggleDefinition, ToggleState, ToggleView
from toggles.core.store.last_reload import LastReload, ReloadStatus
from toggles.core.store.manager import ToggleStore
from toggles.core.store.schema import Toggle, ToggleSet, definitions_from_config

__all__ = [
    "ToggleDefinition",
    "ToggleState",
    "ToggleView",
    "LastReload",
    "ReloadStatus",
    "ToggleStore",
    "Toggle",
    "ToggleSet",
    "definitions_from_config",
]
