# processors/gtfs/task.py
# -*- coding: utf-8 -*-
"""
Per-agency import context passed through every pipeline stage.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from common.core_utils import AgencyLogAdapter
from config.config_models import AgencyConfig, ImportSettings

from .errors import ConfigurationError

module_logger = logging.getLogger(__name__)

FEED_DIR_NAME = "feed"


@dataclass(frozen=True)
class ImportTask:
    """
    Everything one agency import needs to know.

    The task never changes once built; stage results (the extracted feed
    directory, running bounds, per-file outcomes) are returned by the stages
    instead of being stored here.
    """
    agency_key: str
    download_dir: Path
    agency_url: Optional[str] = None
    path: Optional[str] = None
    exclude: Tuple[str, ...] = ()
    skip_delete: bool = False
    proj: Optional[str] = None
    request_timeout: int = 120
    logger: Union[logging.Logger, logging.LoggerAdapter] = field(
        default=module_logger, compare=False, repr=False
    )

    @property
    def feed_dir(self) -> Path:
        """Directory the feed's .txt files are extracted or copied into."""
        return self.download_dir / FEED_DIR_NAME

    def is_excluded(self, filename_base: str) -> bool:
        return filename_base in self.exclude

    def logger_for(self, logger: logging.Logger) -> AgencyLogAdapter:
        """Wrap a module logger so its lines carry this task's agency key."""
        return AgencyLogAdapter(logger, self.agency_key)

    @classmethod
    def from_config(
        cls,
        agency: AgencyConfig,
        settings: ImportSettings,
        logger: Optional[logging.Logger] = None,
    ) -> "ImportTask":
        """
        Build the task for one configured agency.

        Raises:
            ConfigurationError: If the agency has no key, a key that is not a
                plain directory name, or neither a URL nor a path.
        """
        if not agency.agency_key:
            raise ConfigurationError("No Agency Key provided.")
        agency_key = agency.agency_key
        if agency_key in (".", "..") or "\\" in agency_key or Path(agency_key).name != agency_key:
            raise ConfigurationError(
                f"Agency Key '{agency_key}' must be a plain directory name.",
                agency_key=agency_key,
            )
        if not agency.url and not agency.path:
            raise ConfigurationError(
                "No Agency URL or path provided.", agency_key=agency.agency_key
            )

        skip_delete = (
            agency.skip_delete if agency.skip_delete is not None else settings.skip_delete
        )
        return cls(
            agency_key=agency.agency_key,
            download_dir=Path(settings.download_dir).resolve() / agency.agency_key,
            agency_url=agency.url,
            path=agency.path,
            exclude=tuple(agency.exclude),
            skip_delete=skip_delete,
            proj=agency.proj,
            request_timeout=settings.request_timeout,
            logger=AgencyLogAdapter(logger or module_logger, agency.agency_key),
        )
