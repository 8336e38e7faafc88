import datetime
import decimal
import uuid
from typing import Any, Dict, Optional, Sequence
from sqlalchemy.dialects import mssql
from flashsync.connectors.base import SourceConnector
from flashsync.models.config import DatabaseConfig, PoolConfig

# pyodbc 的 type_code 是 Python 类型
_TYPE_NAMES: Dict[type, str] = {
    bool: "BIT",
    int: "INT",
    float: "FLOAT",
    decimal.Decimal: "DECIMAL",
    str: "NVARCHAR",
    bytes: "VARBINARY",
    bytearray: "VARBINARY",
    datetime.datetime: "DATETIME2",
    datetime.date: "DATE",
    datetime.time: "TIME",
    uuid.UUID: "UNIQUEIDENTIFIER",
}


class SQLServerConnector(SourceConnector):
    drivername = "mssql+pyodbc"

    def __init__(self, config: DatabaseConfig, pool: PoolConfig = None):
        super().__init__(config, pool)
        self._preparer = mssql.dialect().identifier_preparer

    def url_query(self) -> dict:
        # 构建SQL Server连接参数
        query = super().url_query()
        query["driver"] = self.config.driver or "ODBC Driver 17 for SQL Server"
        query["TrustServerCertificate"] = "yes" if self.config.trust_server_certificate else "no"
        return query

    def column_type_name(self, description: Sequence[Any]) -> str:
        type_code = description[1]
        return _TYPE_NAMES.get(type_code, getattr(type_code, "__name__", str(type_code)).upper())

    def quote(self, name: str) -> str:
        return self._preparer.quote_identifier(name)

    def qualified_name(self, table_name: str) -> str:
        schema = self.config.schema or "dbo"
        return f"{self.quote(schema)}.{self.quote(table_name)}"

    def select_query(self, table_name: str, limit: Optional[int] = None) -> str:
        if limit is None:
            return f"SELECT * FROM {self.qualified_name(table_name)}"
        return f"SELECT TOP {int(limit)} * FROM {self.qualified_name(table_name)}"
