import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from loguru import logger
from flashsync.connectors.base import ColumnMetadata, DestinationConnector, SourceConnector
from flashsync.models.config import DatabaseConfig, PoolConfig
from flashsync.models.schema import InferredSchema, TableSpec


def database_config(database: str = "db", db_type: str = "mysql") -> DatabaseConfig:
    return DatabaseConfig(
        type=db_type,
        host="localhost",
        port=3306,
        username="user",
        password="secret",
        database=database,
    )


class BrokenRow:
    """模拟驱动层 scan 失败的行"""

    def __iter__(self):
        raise ValueError("invalid utf-8 sequence in column 2")


@dataclass
class FakeTable:
    columns: List[ColumnMetadata]
    rows: List[Any] = field(default_factory=list)
    open_error: Optional[BaseException] = None
    fetch_error: Optional[BaseException] = None
    delay: float = 0


class FakeCursor:
    def __init__(self, columns: List[ColumnMetadata], rows: List[Any],
                 fetch_error: Optional[BaseException] = None):
        self._columns = columns
        self._rows = list(rows)
        self._fetch_error = fetch_error
        self.closed = False

    @property
    def columns(self) -> List[str]:
        return [c.name for c in self._columns]

    def describe(self) -> List[ColumnMetadata]:
        return list(self._columns)

    async def fetch(self, size: int) -> Sequence[Any]:
        if not self._rows and self._fetch_error is not None:
            raise self._fetch_error
        batch, self._rows = self._rows[:size], self._rows[size:]
        return batch

    async def close(self) -> None:
        self.closed = True


class FakeSourceConnector(SourceConnector):
    """内存中的源数据库, 按表名返回预置的列和行"""

    def __init__(self, tables: Dict[str, FakeTable], config: Optional[DatabaseConfig] = None,
                 pool: Optional[PoolConfig] = None):
        super().__init__(config or database_config(), pool)
        self.tables = tables
        self.queries: List[str] = []
        self.cursors: List[FakeCursor] = []
        self.connected = False
        self.disconnected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.disconnected = True

    def quote(self, name: str) -> str:
        return name

    def qualified_name(self, table_name: str) -> str:
        return table_name

    def column_type_name(self, description: Sequence[Any]) -> str:
        return description[1]

    async def open_cursor(self, query: str) -> FakeCursor:
        self.queries.append(query)
        table = self.tables[query.split(" FROM ")[1].split()[0]]
        if table.delay:
            await asyncio.sleep(table.delay)
        if table.open_error is not None:
            raise table.open_error
        rows = table.rows[:1] if query.endswith("LIMIT 1") else table.rows
        cursor = FakeCursor(table.columns, rows, table.fetch_error)
        self.cursors.append(cursor)
        return cursor


class UnsafeSchemaChange(Exception):
    pass


@dataclass
class FakeJob:
    table: str
    payload: bytes
    cancelled: bool = False


class FakeDestination(DestinationConnector):
    """内存中的目标仓库, 记录所有调用"""

    def __init__(self, tables: Optional[Dict[str, InferredSchema]] = None):
        self.tables: Dict[str, InferredSchema] = dict(tables or {})
        self.calls: List[tuple] = []
        self.loads: List[FakeJob] = []
        self.metadata_error: Optional[BaseException] = None
        self.update_error: Optional[BaseException] = None
        self.create_error: Optional[BaseException] = None
        self.delete_error: Optional[BaseException] = None
        self.start_errors: Dict[str, BaseException] = {}
        self.wait_errors: Dict[str, BaseException] = {}
        self.job_failures: Dict[str, str] = {}
        self.load_delays: Dict[str, float] = {}

    async def get_table_schema(self, table_name: str) -> Optional[InferredSchema]:
        self.calls.append(("get", table_name))
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.tables.get(table_name)

    async def create_table(self, spec: TableSpec) -> None:
        self.calls.append(("create", spec.name))
        if self.create_error is not None:
            raise self.create_error
        self.tables[spec.name] = spec.schema

    async def update_table_schema(self, spec: TableSpec) -> None:
        self.calls.append(("update", spec.name))
        if self.update_error is not None:
            raise self.update_error
        self.tables[spec.name] = spec.schema

    async def delete_table(self, table_name: str) -> None:
        self.calls.append(("delete", table_name))
        if self.delete_error is not None:
            raise self.delete_error
        del self.tables[table_name]

    def is_unsafe_schema_change(self, error: BaseException) -> bool:
        return isinstance(error, UnsafeSchemaChange)

    async def start_load(self, table_name: str, payload: bytes) -> FakeJob:
        self.calls.append(("load", table_name))
        if table_name in self.start_errors:
            raise self.start_errors[table_name]
        job = FakeJob(table_name, payload)
        self.loads.append(job)
        return job

    async def wait_for_load(self, job: FakeJob, timeout: Optional[float] = None) -> Optional[str]:
        delay = self.load_delays.get(job.table)
        if delay:
            await asyncio.sleep(delay)
        if job.table in self.wait_errors:
            raise self.wait_errors[job.table]
        return self.job_failures.get(job.table)

    async def cancel_load(self, job: FakeJob) -> None:
        self.calls.append(("cancel", job.table))
        job.cancelled = True

    def actions(self, kind: str) -> List[str]:
        return [name for action, name in self.calls if action == kind]


class LogCapture:
    """把 loguru 的日志记录收集到列表中"""

    def __init__(self):
        self.records: List[dict] = []
        self._handler_id = None

    def start(self) -> "LogCapture":
        self._handler_id = logger.add(lambda message: self.records.append(message.record), level="DEBUG")
        return self

    def stop(self) -> None:
        if self._handler_id is not None:
            logger.remove(self._handler_id)
            self._handler_id = None

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [
            r["message"] for r in self.records
            if level is None or r["level"].name == level
        ]
