from typing import List, Optional, Tuple
from dataclasses import dataclass, field

@dataclass(frozen=True)
class DatabaseConfig:
    type: str
    host: str
    port: int
    username: str
    password: str
    database: str
    driver: Optional[str] = None
    schema: Optional[str] = None
    sslmode: Optional[str] = None
    trust_server_certificate: Optional[bool] = None

@dataclass(frozen=True)
class PoolConfig:
    """源数据库连接池参数"""
    max_open: int = 10
    max_idle: int = 10
    max_lifetime: int = 60

@dataclass(frozen=True)
class DataSource:
    name: str
    connection: DatabaseConfig
    tables: Tuple[str, ...] = ()

    @property
    def database(self) -> str:
        return self.connection.database

@dataclass(frozen=True)
class SyncTask:
    source: DataSource
    table: str

    @property
    def name(self) -> str:
        return f"{self.source.name}.{self.table}"

def expand_tasks(sources: List[DataSource]) -> List[SyncTask]:
    """按配置顺序展开所有 (数据源, 表) 任务"""
    return [
        SyncTask(source=source, table=table)
        for source in sources
        for table in source.tables
    ]

@dataclass
class SyncConfig:
    project_id: str
    dataset_id: str
    sources: List[DataSource] = field(default_factory=list)
    location: Optional[str] = None
    pool: PoolConfig = field(default_factory=PoolConfig)
    sync_timeout: Optional[float] = 600
    load_timeout: Optional[float] = None
    fetch_size: int = 1000
    date_format: str = "%Y-%m-%dT%H:%M:%S"
    allow_recreate: bool = True

    def tasks(self) -> List[SyncTask]:
        return expand_tasks(self.sources)
