"""Build the list of enabled sources from config."""

import config as config
from sources.base import BaseSource
from sources.careers_page import CareersPageSource
from sources.greenhouse import GreenhouseSource
from sources.remoteok import RemoteOKSource
from sources.weworkremotely import WeWorkRemotelySource


def build_sources() -> list[BaseSource]:
    sources: list[BaseSource] = [CareersPageSource(site) for site in config.SITE_CONFIGS]
    sources.extend(
        GreenhouseSource(company, board) for company, board in config.GREENHOUSE_BOARDS.items()
    )
    if config.REMOTEOK_ENABLED:
        sources.append(RemoteOKSource())
    if config.WWR_FEEDS:
        sources.append(WeWorkRemotelySource(config.WWR_FEEDS))

    ids = [s.source_id for s in sources]
    duplicates = {i for i in ids if ids.count(i) > 1}
    if duplicates:
        raise ValueError(f"Duplicate source ids in sites.json: {sorted(duplicates)}")
    return sources
