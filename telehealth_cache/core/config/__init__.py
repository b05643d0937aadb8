"""
Configuration Module

- **settings.py**: Pydantic-based configuration loaded from the environment
- **constants.py**: Stage identifiers, key namespaces, header names

Usage:
------
```python
from telehealth_cache.core.config import get_settings

settings = get_settings()
if settings.redis.is_configured:
    ...
```
"""

from telehealth_cache.core.config.settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
