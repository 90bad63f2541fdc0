"""External supplier scout: keyless discovery on public trade directories."""

from procmatch.config import Settings
from procmatch.scout.trade_directories import SupplierScout, TradeDirectoryScout


def get_scout(settings: Settings) -> SupplierScout:
    return TradeDirectoryScout(
        directories=settings.scout_directory_list,
        search_url=settings.procmatch_scout_search_url,
        max_results=settings.procmatch_scout_max_results,
        timeout=settings.procmatch_scout_timeout,
    )


__all__ = ["SupplierScout", "TradeDirectoryScout", "get_scout"]
