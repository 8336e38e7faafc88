from typing import Optional


class SyncError(Exception):
    """
    同步过程中所有异常的基类

    Args:
        message: 错误描述
        source: 所属数据源名称
        table: 所属表名
    """

    def __init__(self, message: str, source: Optional[str] = None, table: Optional[str] = None):
        self.message = message
        self.source = source
        self.table = table
        super().__init__(message)

    def __str__(self) -> str:
        if self.source and self.table:
            return f"[{self.source}.{self.table}] {self.message}"
        if self.table:
            return f"[{self.table}] {self.message}"
        return self.message


class SyncConnectionError(SyncError):
    """无法打开或使用源/目标连接"""


class SchemaInferenceError(SyncError):
    """采样查询或列元数据读取失败"""


class ReconciliationError(SyncError):
    """目标表结构无法与推断结构对齐"""


class RowParseError(SyncError):
    """单行读取失败, 在本地恢复, 不会上抛"""

    def __init__(self, message: str, row_number: Optional[int] = None, **kwargs):
        self.row_number = row_number
        super().__init__(message, **kwargs)


class ExtractionError(SyncError):
    """源查询执行或游标迭代失败"""


class SerializationError(SyncError):
    """记录无法编码为JSON"""


class LoadError(SyncError):
    """批量加载作业提交、等待或执行失败"""


class SyncTimeoutError(SyncError):
    """整个同步运行超时"""


class ConfigError(ValueError):
    """配置文件内容无效"""
