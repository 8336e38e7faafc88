from typing import Dict, Optional, Type
from flashsync.connectors.base import SourceConnector
from flashsync.connectors.mysql import MySQLConnector
from flashsync.connectors.sqlserver import SQLServerConnector
from flashsync.connectors.postgresql import PostgreSQLConnector
from flashsync.models.config import DatabaseConfig, PoolConfig

class ConnectorFactory:
    _connectors: Dict[str, Type[SourceConnector]] = {
        "mysql": MySQLConnector,
        "sqlserver": SQLServerConnector,
        "postgresql": PostgreSQLConnector
    }

    @classmethod
    def get_connector(cls, db_type: str, config: DatabaseConfig, pool: Optional[PoolConfig] = None) -> SourceConnector:
        """
        获取源数据库连接器实例, 每次调用都返回独立的连接池

        Args:
            db_type: 数据库类型 (如 "mysql", "sqlserver", "postgresql")
            config: 数据库配置
            pool: 连接池参数

        Returns:
            SourceConnector: 数据库连接器实例

        Raises:
            ValueError: 如果数据库类型不支持
        """
        connector_class = cls._connectors.get(db_type.lower())
        if not connector_class:
            raise ValueError(f"Unsupported database type: {db_type}")

        return connector_class(config, pool)
