from prime_time.core.config import ServerSettings, load_config_json, load_settings

__all__ = ["ServerSettings", "load_config_json", "load_settings"]
