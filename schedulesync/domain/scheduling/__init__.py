"""
Scheduling Domain

Rule engine, rule management and availability calculation.

Structure:
```
schedulesync/domain/scheduling/
├── schemas.py              # Rule, rule-result and request schemas
├── repository.py           # Rule and booking queries
├── rules_engine.py         # Condition -> action pipeline run before a booking is saved
├── rule_parser.py          # Plain-English rule descriptions -> structured rules
├── availability_service.py # Working hours and free 30-minute slots
├── service.py              # Rule CRUD and rule-checked booking creation
└── router.py               # /api/scheduling-rules endpoints
```
"""

from .router import router

__all__ = ["router"]
