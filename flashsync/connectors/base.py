import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, CursorResult, Engine, URL
from sqlalchemy.exc import SQLAlchemyError
from loguru import logger
from flashsync.errors import SyncConnectionError
from flashsync.models.config import DatabaseConfig, PoolConfig
from flashsync.models.schema import InferredSchema, TableSpec


@dataclass(frozen=True)
class ColumnMetadata:
    """查询结果中单列的驱动元数据, nullable 为 None 表示驱动无法判断"""
    name: str
    type_name: str
    nullable: Optional[bool] = None


class QueryCursor:
    """一次查询的结果游标, 所有阻塞调用都在线程中执行"""

    def __init__(self, connection: Connection, result: CursorResult, columns: List[ColumnMetadata]):
        self._connection = connection
        self._result = result
        self._columns = columns

    @property
    def columns(self) -> List[str]:
        return [col.name for col in self._columns]

    def describe(self) -> List[ColumnMetadata]:
        return list(self._columns)

    async def fetch(self, size: int) -> Sequence[Any]:
        """读取下一批行, 返回空列表表示结果集已读完"""
        return await asyncio.to_thread(self._result.fetchmany, size)

    async def close(self) -> None:
        def _close():
            try:
                self._result.close()
            finally:
                self._connection.close()
        await asyncio.to_thread(_close)


class SourceConnector(ABC):
    drivername: str = ""
    default_driver_query: dict = {}

    def __init__(self, config: DatabaseConfig, pool: Optional[PoolConfig] = None):
        self.config = config
        self.pool = pool or PoolConfig()
        self._engine: Optional[Engine] = None

    @property
    def kind(self) -> str:
        return self.config.type.lower()

    def build_url(self) -> URL:
        """构建 SQLAlchemy 连接 URL"""
        return URL.create(
            self.drivername,
            username=self.config.username,
            password=self.config.password,
            host=self.config.host,
            port=self.config.port,
            database=self.config.database,
            query=self.url_query(),
        )

    def url_query(self) -> dict:
        return dict(self.default_driver_query)

    def engine_options(self) -> dict:
        """连接池参数: max_idle 对应常驻连接数, 超出部分为溢出连接"""
        max_open = max(self.pool.max_open, 1)
        max_idle = min(max(self.pool.max_idle, 1), max_open)
        options = {
            "pool_size": max_idle,
            "max_overflow": max_open - max_idle,
            "pool_pre_ping": True,
        }
        if self.pool.max_lifetime and self.pool.max_lifetime > 0:
            options["pool_recycle"] = self.pool.max_lifetime
        return options

    async def connect(self) -> None:
        """建立数据库连接"""
        def _connect():
            engine = create_engine(self.build_url(), **self.engine_options())
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return engine

        try:
            self._engine = await asyncio.to_thread(_connect)
            logger.info(f"Successfully connected to {self.kind} database: {self.config.database}")
        except Exception as e:
            logger.error(f"Failed to connect to {self.kind} database {self.config.database}: {str(e)}")
            raise SyncConnectionError(f"cannot connect to {self.kind} database {self.config.database}: {e}") from e

    async def disconnect(self) -> None:
        """关闭数据库连接"""
        if self._engine:
            await asyncio.to_thread(self._engine.dispose)
            self._engine = None
            logger.info(f"Disconnected from {self.kind} database {self.config.database}")

    async def open_cursor(self, query: str) -> QueryCursor:
        """
        执行查询并返回流式游标

        Args:
            query: 要执行的SQL

        Raises:
            SyncConnectionError: 尚未建立连接
            SQLAlchemyError: 查询执行失败
        """
        if self._engine is None:
            raise SyncConnectionError(f"{self.kind} connector for {self.config.database} is not connected")

        def _open():
            conn = self._engine.connect()
            try:
                result = conn.execution_options(stream_results=True).execute(text(query))
                columns = [self.describe_column(d) for d in result.cursor.description]
                return QueryCursor(conn, result, columns)
            except BaseException:
                conn.close()
                raise

        try:
            return await asyncio.to_thread(_open)
        except SQLAlchemyError as e:
            logger.error(f"Failed to execute query: {query}, error: {str(e)}")
            raise

    def describe_column(self, description: Sequence[Any]) -> ColumnMetadata:
        return ColumnMetadata(
            name=description[0],
            type_name=self.column_type_name(description),
            nullable=self.column_nullable(description),
        )

    @abstractmethod
    def column_type_name(self, description: Sequence[Any]) -> str:
        """把 DB-API description 中的类型码翻译成数据库类型名"""
        pass

    def column_nullable(self, description: Sequence[Any]) -> Optional[bool]:
        null_ok = description[6] if len(description) > 6 else None
        return None if null_ok is None else bool(null_ok)

    @abstractmethod
    def quote(self, name: str) -> str:
        pass

    def qualified_name(self, table_name: str) -> str:
        return f"{self.quote(self.config.database)}.{self.quote(table_name)}"

    def select_query(self, table_name: str, limit: Optional[int] = None) -> str:
        """整表查询, limit 用于 schema 推断的采样查询"""
        query = f"SELECT * FROM {self.qualified_name(table_name)}"
        if limit is not None:
            query += f" LIMIT {int(limit)}"
        return query


class DestinationConnector(ABC):
    """目标仓库的表管理与批量加载接口"""

    @abstractmethod
    async def get_table_schema(self, table_name: str) -> Optional[InferredSchema]:
        """返回现有表结构, 表不存在时返回 None"""
        pass

    @abstractmethod
    async def create_table(self, spec: TableSpec) -> None:
        pass

    @abstractmethod
    async def update_table_schema(self, spec: TableSpec) -> None:
        pass

    @abstractmethod
    async def delete_table(self, table_name: str) -> None:
        pass

    @abstractmethod
    def is_unsafe_schema_change(self, error: BaseException) -> bool:
        """更新结构失败是否因为目标拒绝了不安全的原地迁移 (类型变更/字段删除)"""
        pass

    @abstractmethod
    async def start_load(self, table_name: str, payload: bytes) -> Any:
        """提交整表替换的批量加载作业, 返回作业句柄"""
        pass

    @abstractmethod
    async def wait_for_load(self, job: Any, timeout: Optional[float] = None) -> Optional[str]:
        """
        等待加载作业结束

        Returns:
            作业自身报告的错误信息, 成功时为 None

        Raises:
            Exception: 等待过程本身失败
        """
        pass

    async def cancel_load(self, job: Any) -> None:
        pass

    async def close(self) -> None:
        pass
