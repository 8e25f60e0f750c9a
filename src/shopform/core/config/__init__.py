"""Settings: models, layered loading, .env support."""

from shopform.core.config.loader import clear_cache, load_settings
from shopform.core.config.models import ShopformSettings

__all__ = ["ShopformSettings", "clear_cache", "load_settings"]
