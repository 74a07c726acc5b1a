"""
rallypoint: match lifecycle and concurrency-safe participation engine.

Layers
------
- ``rallypoint.core``: configuration, logging, database, event bus, validation
- ``rallypoint.database.models``: ORM tables and status enums
- ``rallypoint.modules``: match, invitation and notification domains
"""

__version__ = "0.1.0"
