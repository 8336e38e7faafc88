import datetime
import decimal
import uuid
from typing import Any, Dict, Optional, Sequence, Union
from flashsync.errors import RowParseError

Value = Union[str, int, float, bool, None]
Record = Dict[str, Value]


class RowParser:
    """
    把一行源数据转换为可序列化的记录

    日期格式在构造时注入, 对所有时间类型的列统一生效。类型转换本身不会失败,
    只有无法读取该行 (驱动层 scan 失败或列数不符) 时才抛出 RowParseError。
    """

    def __init__(self, date_format: str):
        self.date_format = date_format

    def parse(self, row: Any, columns: Sequence[str], row_number: Optional[int] = None) -> Record:
        try:
            values = tuple(row)
        except Exception as e:
            raise RowParseError(f"failed to scan row: {e}", row_number=row_number) from e

        if len(values) != len(columns):
            raise RowParseError(
                f"failed to scan row: expected {len(columns)} columns, got {len(values)}",
                row_number=row_number,
            )

        return {name: self.convert(value) for name, value in zip(columns, values)}

    def convert(self, value: Any) -> Value:
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value).decode("utf-8", errors="replace")
        # datetime 是 date 的子类
        if isinstance(value, (datetime.datetime, datetime.date)):
            return value.strftime(self.date_format)
        # 驱动以文本形式返回的类型
        if isinstance(value, (datetime.time, datetime.timedelta, decimal.Decimal, uuid.UUID)):
            return str(value)
        return value
