from __future__ import annotations

DATE_TYPES = ('today', 'lastday')

SNAPSHOT_STATUSES = ('present', 'absent')

SNAPSHOT_DEFAULT_LIMIT = 50
SNAPSHOT_MAX_LIMIT = 500
