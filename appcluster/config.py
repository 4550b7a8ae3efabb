import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


class ConfigurationError(ValueError):
    """Raised when the cluster configuration cannot be turned into resources."""


class Config:
    def __init__(self, config_path: Optional[str] = None):
        load_dotenv()

        self.config_path = Path(config_path or os.getenv("APPCLUSTER_CONFIG", "config.yml"))
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        with open(self.config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ConfigurationError(f"{self.config_path}: top level must be a mapping")

        return self._substitute_env_vars(config)

    def _substitute_env_vars(self, config: Any) -> Any:
        if isinstance(config, dict):
            return {k: self._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = re.compile(r"\$\{([^}]+)}")
            matches = pattern.findall(config)
            result = config
            for var_name in matches:
                var_value = os.getenv(var_name, "")
                result = result.replace(f"${{{var_name}}}", var_value)
            return result
        else:
            return config

    def get(self, key: str, default: Any = None) -> Any:
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    @property
    def cloudflare_token(self) -> str:
        return os.getenv("CLOUDFLARE_API_TOKEN", "")

    @property
    def dns_zone(self) -> str:
        return self.get("dns.zone", "")

    @property
    def cluster_enabled(self) -> bool:
        return bool(self.get("cluster.enabled", True))

    @property
    def local_node_id(self) -> str:
        return self.get("cluster.local-node", "")

    @property
    def status_interval(self) -> int:
        return self.get("cluster.status-interval", 300)

    @property
    def nodes(self) -> List[dict]:
        return self.get("nodes", [])

    @property
    def resources(self) -> List[dict]:
        return self.get("resources", [])

    @property
    def log_level(self) -> str:
        return self.get("logging.level", "INFO")

    @property
    def log_file(self) -> Optional[str]:
        return self.get("logging.file", "logs/appcluster.log")

    @property
    def telegram_enabled(self) -> bool:
        return self.get("telegram.enabled", False)

    @property
    def telegram_bot_token(self) -> str:
        return os.getenv("TELEGRAM_BOT_TOKEN", "")

    @property
    def telegram_chat_id(self) -> str:
        return os.getenv("TELEGRAM_CHAT_ID", "")

    @property
    def telegram_topic_id(self) -> int | None:
        topic_id = os.getenv("TELEGRAM_TOPIC_ID", "")
        if topic_id and topic_id.strip():
            try:
                return int(topic_id.strip())
            except ValueError:
                return None
        return None

    @property
    def timezone(self) -> str:
        return os.getenv("TIMEZONE", "UTC")

    @property
    def schedule_timezone(self) -> str:
        return self.get("cluster.timezone", self.timezone)

    @property
    def time_format(self) -> str:
        return os.getenv("TIME_FORMAT", "%d.%m.%Y %H:%M:%S")

    @property
    def telegram_locale(self) -> str:
        return self.get("telegram.locale", "en")

    @property
    def telegram_notify_result_changes(self) -> bool:
        return self.get("telegram.notify.result_changes", True)

    @property
    def telegram_notify_dns_changes(self) -> bool:
        return self.get("telegram.notify.dns_changes", True)

    @property
    def telegram_notify_errors(self) -> bool:
        return self.get("telegram.notify.errors", True)
