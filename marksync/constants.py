"""
Constants for marksync.

Many of these are also exposed through the config system.
"""

# Sync scopes
SCOPE_HOST_TO_MANY = "host-to-many"
SCOPE_GLOBAL = "global"
SYNC_SCOPES = (SCOPE_HOST_TO_MANY, SCOPE_GLOBAL)
DEFAULT_SCOPE = SCOPE_GLOBAL

# Conflict resolution strategies
STRATEGY_LOCAL_WINS = "local-wins"
STRATEGY_REMOTE_WINS = "remote-wins"
STRATEGY_MERGE = "merge"
STRATEGY_MANUAL = "manual"
STRATEGY_SKIP = "skip"
AUTO_STRATEGIES = (STRATEGY_LOCAL_WINS, STRATEGY_REMOTE_WINS, STRATEGY_MERGE)
DEFAULT_STRATEGY = STRATEGY_MERGE

# Backup types and statuses
BACKUP_TYPE_MANUAL = "manual"
BACKUP_TYPE_SCHEDULED = "scheduled"
BACKUP_TYPES = (BACKUP_TYPE_MANUAL, BACKUP_TYPE_SCHEDULED)

BACKUP_STATUS_SUCCESS = "success"
BACKUP_STATUS_FAILED = "failed"
BACKUP_STATUSES = (BACKUP_STATUS_SUCCESS, BACKUP_STATUS_FAILED)

# Retention
UNLIMITED_RETENTION = -1
DEFAULT_RETENTION_COUNT = 10

# Recent backups window (days)
DEFAULT_RECENT_DAYS = 7

# Conflict recommendation thresholds
MANY_CONFLICTS_THRESHOLD = 10
