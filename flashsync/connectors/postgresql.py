from typing import Any, Dict, Optional, Sequence
from sqlalchemy.dialects import postgresql
from flashsync.connectors.base import SourceConnector
from flashsync.models.config import DatabaseConfig, PoolConfig

# psycopg2 的 type_code 是 pg_type 的 OID
_TYPE_NAMES: Dict[int, str] = {
    16: "BOOL",
    17: "BYTEA",
    20: "INT8",
    21: "INT2",
    23: "INT4",
    25: "TEXT",
    114: "JSON",
    700: "FLOAT4",
    701: "FLOAT8",
    790: "MONEY",
    1042: "BPCHAR",
    1043: "VARCHAR",
    1082: "DATE",
    1083: "TIME",
    1114: "TIMESTAMP",
    1184: "TIMESTAMPTZ",
    1186: "INTERVAL",
    1700: "NUMERIC",
    2950: "UUID",
    3802: "JSONB",
}


class PostgreSQLConnector(SourceConnector):
    drivername = "postgresql+psycopg2"

    def __init__(self, config: DatabaseConfig, pool: PoolConfig = None):
        super().__init__(config, pool)
        self._preparer = postgresql.dialect().identifier_preparer

    def url_query(self) -> dict:
        query = super().url_query()
        # 添加schema搜索路径
        if self.config.schema:
            query["options"] = f"-csearch_path={self.config.schema}"
        if self.config.sslmode:
            query["sslmode"] = self.config.sslmode
        return query

    def column_type_name(self, description: Sequence[Any]) -> str:
        return _TYPE_NAMES.get(description[1], f"OID({description[1]})")

    def column_nullable(self, description: Sequence[Any]) -> Optional[bool]:
        # psycopg2 不提供 null_ok
        return None

    def quote(self, name: str) -> str:
        return self._preparer.quote_identifier(name)

    def qualified_name(self, table_name: str) -> str:
        schema = self.config.schema or "public"
        return f"{self.quote(schema)}.{self.quote(table_name)}"
