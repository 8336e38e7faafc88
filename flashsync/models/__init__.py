from flashsync.models.config import DatabaseConfig, PoolConfig, DataSource, SyncTask, SyncConfig
from flashsync.models.schema import SemanticType, FieldSpec, TableSpec, schemas_match
from flashsync.models.results import SyncOutcome, RunResult
