"""
Configuration management for Rallypoint.

Static vs Dynamic Configuration
-------------------------------
**Static (Config):**
- Loaded from environment variables (and ``.env``) at import
- Database URL, pool sizing, retry budget, logging switches
- Changes require a restart

**Dynamic (ConfigManager):**
- Built-in defaults deep-merged with YAML files from ``Config.CONFIG_DIR``
- Match rules: invitation lifetime, waitlist capacity, capacity bounds
- Runtime overrides for operators and tests

Usage
-----
```python
from rallypoint.core.config import Config, ConfigManager

db_url = Config.DATABASE_URL
ttl_days = ConfigManager.get("matches.invitation_ttl_days", default=7)
```
"""

from rallypoint.core.config.config import Config, Environment
from rallypoint.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
]
