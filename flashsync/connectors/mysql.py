from typing import Any, Dict, Sequence
from pymysql.constants import FIELD_TYPE
from sqlalchemy.dialects import mysql
from flashsync.connectors.base import SourceConnector
from flashsync.models.config import DatabaseConfig, PoolConfig

# pymysql 类型码 -> MySQL 类型名
_TYPE_NAMES: Dict[int, str] = {
    FIELD_TYPE.DECIMAL: "DECIMAL",
    FIELD_TYPE.NEWDECIMAL: "DECIMAL",
    FIELD_TYPE.TINY: "TINYINT",
    FIELD_TYPE.SHORT: "SMALLINT",
    FIELD_TYPE.INT24: "MEDIUMINT",
    FIELD_TYPE.LONG: "INT",
    FIELD_TYPE.LONGLONG: "BIGINT",
    FIELD_TYPE.FLOAT: "FLOAT",
    FIELD_TYPE.DOUBLE: "DOUBLE",
    FIELD_TYPE.NULL: "NULL",
    FIELD_TYPE.TIMESTAMP: "TIMESTAMP",
    FIELD_TYPE.DATE: "DATE",
    FIELD_TYPE.NEWDATE: "DATE",
    FIELD_TYPE.TIME: "TIME",
    FIELD_TYPE.DATETIME: "DATETIME",
    FIELD_TYPE.YEAR: "YEAR",
    FIELD_TYPE.VARCHAR: "VARCHAR",
    FIELD_TYPE.VAR_STRING: "VARCHAR",
    FIELD_TYPE.STRING: "CHAR",
    # BIT 值由 pymysql 以原始字节返回
    FIELD_TYPE.BIT: "BINARY",
    FIELD_TYPE.JSON: "JSON",
    FIELD_TYPE.ENUM: "ENUM",
    FIELD_TYPE.SET: "SET",
    FIELD_TYPE.TINY_BLOB: "TEXT",
    FIELD_TYPE.MEDIUM_BLOB: "TEXT",
    FIELD_TYPE.LONG_BLOB: "TEXT",
    FIELD_TYPE.BLOB: "TEXT",
    FIELD_TYPE.GEOMETRY: "GEOMETRY",
}


class MySQLConnector(SourceConnector):
    drivername = "mysql+pymysql"
    default_driver_query = {"charset": "utf8mb4"}

    def __init__(self, config: DatabaseConfig, pool: PoolConfig = None):
        super().__init__(config, pool)
        self._preparer = mysql.dialect().identifier_preparer

    def column_type_name(self, description: Sequence[Any]) -> str:
        type_code = description[1]
        name = _TYPE_NAMES.get(type_code, f"UNKNOWN({type_code})")
        # BOOLEAN 在 MySQL 中存储为 TINYINT(1)
        if name == "TINYINT" and len(description) > 3 and description[3] == 1:
            return "BOOLEAN"
        return name

    def quote(self, name: str) -> str:
        return self._preparer.quote_identifier(name)
