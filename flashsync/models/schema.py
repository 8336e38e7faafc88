from enum import Enum
from typing import Iterable, Optional, Tuple, Dict
from dataclasses import dataclass
from loguru import logger


class SemanticType(str, Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    BOOLEAN = "BOOLEAN"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str
    required: bool = False

    @property
    def mode(self) -> str:
        return "REQUIRED" if self.required else "NULLABLE"


InferredSchema = Tuple[FieldSpec, ...]


@dataclass(frozen=True)
class TableSpec:
    """目标表的期望状态: 表名 + 由实时查询推断出的结构"""
    name: str
    schema: InferredSchema

    def __post_init__(self):
        names = [f.name for f in self.schema]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column names in schema for {self.name}: {duplicates}")


def type_name(field_type) -> str:
    """SemanticType 或原始类型字符串统一为大写类型名"""
    if isinstance(field_type, SemanticType):
        return field_type.value
    return str(field_type).upper()


def _type_map(schema: Iterable[FieldSpec]) -> Dict[str, str]:
    return {f.name: type_name(f.type) for f in schema}


def schemas_match(left: Iterable[FieldSpec], right: Iterable[FieldSpec], table: Optional[str] = None) -> bool:
    """
    比较两个表结构是否一致

    只比较字段名和类型, 忽略字段顺序和 mode 等元数据。

    Returns:
        字段数量相同且每个字段名在两侧类型一致时返回 True
    """
    left_types = _type_map(left)
    right_types = _type_map(right)
    logger.debug(f"Comparing schemas for {table}: {len(left_types)} vs {len(right_types)} fields")

    if len(left_types) != len(right_types):
        logger.warning(
            f"Schema field count mismatch for {table}: "
            f"{len(left_types)} != {len(right_types)}"
        )
        return False

    mismatches = []
    for name, field_type in right_types.items():
        if name not in left_types:
            mismatches.append(f"missing:{name}")
        elif left_types[name] != field_type:
            mismatches.append(f"type:{name}")

    if mismatches:
        logger.warning(f"Schema mismatches detected for {table}: {mismatches}")
        return False

    logger.debug(f"Schemas match for {table}")
    return True
