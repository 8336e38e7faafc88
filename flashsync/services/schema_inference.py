from typing import Dict, List
from loguru import logger
from flashsync.connectors.base import ColumnMetadata, SourceConnector
from flashsync.errors import SchemaInferenceError
from flashsync.models.schema import FieldSpec, InferredSchema, SemanticType

# 数据库类型名 (去掉长度/精度参数后大写) -> 语义类型
TYPE_MAPPING: Dict[str, SemanticType] = {
    **dict.fromkeys(
        ["VARCHAR", "CHAR", "TEXT", "TINYTEXT", "MEDIUMTEXT", "LONGTEXT",
         "NVARCHAR", "NCHAR", "NTEXT", "BPCHAR", "CHARACTER VARYING",
         "BINARY", "VARBINARY"],
        SemanticType.STRING,
    ),
    **dict.fromkeys(
        ["INT", "TINYINT", "SMALLINT", "MEDIUMINT", "BIGINT",
         "INTEGER", "INT2", "INT4", "INT8"],
        SemanticType.INTEGER,
    ),
    **dict.fromkeys(
        ["FLOAT", "DOUBLE", "DECIMAL",
         "REAL", "NUMERIC", "FLOAT4", "FLOAT8", "MONEY", "DOUBLE PRECISION"],
        SemanticType.FLOAT,
    ),
    "DATE": SemanticType.DATE,
    **dict.fromkeys(
        ["DATETIME", "TIMESTAMP", "DATETIME2", "SMALLDATETIME", "TIMESTAMPTZ"],
        SemanticType.TIMESTAMP,
    ),
    **dict.fromkeys(["BOOLEAN", "BOOL", "BIT"], SemanticType.BOOLEAN),
}


def map_native_type(type_name: str) -> SemanticType:
    """
    把数据库类型名映射为语义类型

    大小写不敏感, 忽略括号中的长度/精度参数; 未知类型一律映射为 STRING。
    """
    key = (type_name or "").split("(")[0].strip().upper()
    semantic = TYPE_MAPPING.get(key)
    if semantic is None:
        logger.warning(f"Unknown source type {type_name!r}, defaulting to STRING")
        return SemanticType.STRING
    return semantic


def to_field(column: ColumnMetadata) -> FieldSpec:
    # 无法判断可空性时按可空处理
    return FieldSpec(
        name=column.name,
        type=map_native_type(column.type_name),
        required=column.nullable is False,
    )


class SchemaInferencer:
    """通过执行一次采样查询推断目标表结构"""

    async def infer(self, connector: SourceConnector, query: str) -> InferredSchema:
        try:
            cursor = await connector.open_cursor(query)
        except Exception as e:
            raise SchemaInferenceError(f"schema inference query failed: {e}") from e

        try:
            columns: List[ColumnMetadata] = cursor.describe()
        except Exception as e:
            raise SchemaInferenceError(f"failed to get column types for inference: {e}") from e
        finally:
            await cursor.close()

        logger.debug(f"Retrieved {len(columns)} column types for schema inference")
        names = [col.name for col in columns]
        if len(set(names)) != len(names):
            raise SchemaInferenceError(f"query returned duplicate column names: {names}")

        schema = tuple(to_field(col) for col in columns)
        for col, field in zip(columns, schema):
            logger.debug(
                f"Mapped column {col.name}: {col.type_name} -> {field.type.value}"
                f" ({field.mode})"
            )
        logger.info(f"Schema inference complete: {len(schema)} fields mapped")
        return schema
