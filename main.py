import asyncio
import sys
from pathlib import Path
from loguru import logger
from flashsync.config.loader import load_config
from flashsync.connectors.bigquery import BigQueryDestination
from flashsync.services.sync import JobOrchestrator

# 移除默认的处理器
logger.remove()
logger.configure(extra={"source": "-", "table": "-"})

# 添加文件处理器
logger.add(
    "sync.log",
    rotation="500 MB",
    level="INFO",
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | {extra[source]}.{extra[table]} - <level>{message}</level>"
)

# 添加控制台处理器
logger.add(
    sys.stdout,
    level="DEBUG",
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{extra[source]}.{extra[table]}</cyan> - <level>{message}</level>"
)

def parse_args() -> str:
    """解析命令行参数"""
    config_path = None
    for arg in sys.argv[1:]:
        if arg.startswith("config="):
            # 去除可能存在的引号
            config_path = arg.split("=", 1)[1].strip("'\"")
            break

    if not config_path:
        raise ValueError("Missing required argument: config=<path_to_config_file>")

    logger.debug(f"Parsed config path: {config_path}")
    return config_path

async def main() -> int:
    config_path = parse_args()
    config_file = Path(config_path)

    logger.debug(f"Checking file existence: {config_file.absolute()}")
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file.absolute()}")

    logger.info(f"Loading configuration from: {config_path}")
    config = load_config(str(config_file))

    destination = BigQueryDestination(config.project_id, config.dataset_id, location=config.location)
    try:
        orchestrator = JobOrchestrator(config, destination)
        result = await orchestrator.run()
    finally:
        await destination.close()

    if not result.ok:
        logger.error(f"Sync failed: {result.error}")
        return 1
    return 0

if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except Exception as e:
        logger.error(f"Sync failed: {str(e)}")
        raise
