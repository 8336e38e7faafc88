import json
import os
from typing import Any, Callable, Dict, Optional
from loguru import logger
from flashsync.errors import ConfigError
from flashsync.models.config import DatabaseConfig, DataSource, PoolConfig, SyncConfig

# 环境变量 -> (配置项, 类型转换)
ENV_OVERRIDES: Dict[str, tuple] = {
    "GCP_PROJECT_ID": ("project_id", str),
    "BQ_DATASET_ID": ("dataset_id", str),
    "BQ_LOCATION": ("location", str),
    "DB_MAX_OPEN_CONNECTIONS": ("max_open_connections", int),
    "DB_MAX_IDLE_CONNECTIONS": ("max_idle_connections", int),
    "DB_CONN_MAX_LIFETIME": ("connection_max_lifetime", float),
    "SYNC_TIMEOUT": ("sync_timeout", float),
    "DATE_FORMAT": ("date_format", str),
}

DEFAULTS: Dict[str, Any] = {
    "max_open_connections": 10,
    "max_idle_connections": 10,
    "connection_max_lifetime": 60,
    "sync_timeout": 600,
}


def _apply_env_overrides(data: Dict[str, Any], environ: Dict[str, str]) -> None:
    for env_key, (field, convert) in ENV_OVERRIDES.items():
        value = environ.get(env_key, "").strip()
        if not value:
            continue
        try:
            data[field] = convert(value)
            logger.debug(f"使用环境变量 {env_key} 覆盖 {field}")
        except ValueError:
            default = data.get(field, DEFAULTS.get(field))
            logger.warning(f"Invalid {env_key}={value!r}, using {default}")


def _build_source(item: Dict[str, Any]) -> DataSource:
    connection = DatabaseConfig(**item["connection"])
    tables = tuple(item.get("tables", []))
    if not tables:
        logger.warning(f"数据源 {item['name']} 没有配置任何表")
    return DataSource(name=item["name"], connection=connection, tables=tables)


def _non_negative(data: Dict[str, Any], field: str, convert: Callable = int) -> Any:
    value = convert(data.get(field, DEFAULTS[field]))
    if value < 0:
        raise ConfigError(f"{field} must not be negative: {value}")
    return value


def load_config(config_path: str, environ: Optional[Dict[str, str]] = None) -> SyncConfig:
    """
    从JSON文件加载同步配置, 环境变量可以覆盖其中的标量配置

    Args:
        config_path: 配置文件路径
        environ: 环境变量, 默认使用 os.environ

    Returns:
        SyncConfig对象

    Raises:
        FileNotFoundError: 配置文件不存在
        ConfigError: 配置内容无效
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"配置文件不存在: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"配置文件JSON格式错误: {str(e)}") from e

    if not isinstance(data, dict):
        raise ConfigError("配置文件顶层必须是对象")

    _apply_env_overrides(data, os.environ if environ is None else environ)

    try:
        sources = [_build_source(item) for item in data["sources"]]
        pool = PoolConfig(
            max_open=_non_negative(data, "max_open_connections"),
            max_idle=_non_negative(data, "max_idle_connections"),
            max_lifetime=_non_negative(data, "connection_max_lifetime", float),
        )
        config_kwargs = {
            "project_id": data.get("project_id", ""),
            "dataset_id": data.get("dataset_id", ""),
            "sources": sources,
            "pool": pool,
            "sync_timeout": _non_negative(data, "sync_timeout", float),
        }
    except KeyError as e:
        raise ConfigError(f"配置文件缺少必要字段: {str(e)}") from e
    except (TypeError, ValueError) as e:
        raise ConfigError(f"配置文件加载失败: {str(e)}") from e

    # 可选配置, 未提供时使用 SyncConfig 的默认值
    optional_fields = [
        'location',
        'load_timeout',
        'fetch_size',
        'date_format',
        'allow_recreate',
    ]
    for field in optional_fields:
        if field in data:
            config_kwargs[field] = data[field]
            logger.debug(f"使用配置文件中的 {field}: {data[field]}")

    missing = [key for key in ("project_id", "dataset_id") if not str(config_kwargs[key]).strip()]
    if missing:
        logger.error(f"Missing required settings: {missing}")
        raise ConfigError(f"missing required settings: {missing}")

    names = [source.name for source in sources]
    if len(set(names)) != len(names):
        raise ConfigError(f"数据源名称重复: {names}")

    config = SyncConfig(**config_kwargs)
    logger.info(
        f"Configuration loaded: project={config.project_id}, dataset={config.dataset_id}, "
        f"{len(config.tasks())} tables from {len(sources)} sources"
    )
    return config
