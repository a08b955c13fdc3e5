from gymrelay.config.loader import load_config, load_config_with_env, merge_config
from gymrelay.config.schema import Config, cfg

__all__ = ["Config", "cfg", "load_config", "load_config_with_env", "merge_config"]
