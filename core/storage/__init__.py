"""
스토리지 모듈

Config Store, Settings, Investor 저장소 제공
"""

from core.storage.config_store import ConfigStore, init_default_configs
from core.storage.investor_store import InvestorStore
from core.storage.settings_store import Settings, SettingsStore

__all__ = [
    "ConfigStore",
    "init_default_configs",
    "InvestorStore",
    "Settings",
    "SettingsStore",
]
