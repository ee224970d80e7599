# clayminds/services/config_store.py
from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from clayminds.config.settings import settings
from clayminds.schemas.schema_cloud import CloudConfig
from clayminds.services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

CLOUD_CONFIG_KEY = "clayminds_cloud_config"


class ConfigStore:
    """
    Cloud connection settings.

    Two tiers: the compiled-in master values (from Settings) and a
    persisted user override. The override wins when present.
    """

    def __init__(
        self,
        storage: LocalStorage,
        master_url: Optional[str] = None,
        master_key: Optional[str] = None,
    ):
        self._storage = storage
        self._master_url = settings.supabase_url if master_url is None else master_url
        self._master_key = settings.supabase_key if master_key is None else master_key
        self._config = self.load()

    @property
    def config(self) -> CloudConfig:
        return self._config

    def master(self) -> CloudConfig:
        try:
            return CloudConfig(
                url=self._master_url,
                key=self._master_key,
                enabled=bool(self._master_url and self._master_key),
            )
        except ValidationError as e:
            logger.error(f"Master cloud settings are unusable, cloud disabled: {e}")
            return CloudConfig()

    def load(self) -> CloudConfig:
        saved = self._storage.get_json(CLOUD_CONFIG_KEY)
        if saved:
            try:
                self._config = CloudConfig.model_validate(saved)
                return self._config
            except ValidationError as e:
                logger.warning(f"Stored cloud config is invalid, using master values: {e}")
        self._config = self.master()
        return self._config

    def save(self, config: CloudConfig) -> CloudConfig:
        self._config = config
        self._storage.set_json(CLOUD_CONFIG_KEY, config.model_dump())
        logger.info(f"Cloud config saved (enabled={config.enabled})")
        return self._config

    def reset_to_master(self) -> CloudConfig:
        # wipes tombstones and every other local key as well
        self._storage.clear()
        self._config = self.master()
        self._storage.set_json(CLOUD_CONFIG_KEY, self._config.model_dump())
        logger.info("Local state cleared, cloud config reset to master values")
        return self._config
