"""
Assistant Domain

Chat commands for scheduling: intent detection, entity extraction and the
multi-turn confirmation flow.

Structure:
```
schedulesync/domain/assistant/
├── schemas.py          # Request/response models and parser value objects
├── parsers.py          # DateParser, TimeParser, EntityExtractor
├── intents.py          # Ordered (predicate, intent) table
├── pending_actions.py  # Short-lived conversation state and its sweeper
├── service.py          # One handler per intent
└── router.py           # /api/ai endpoints
```
"""

from .router import router

__all__ = ["router"]
