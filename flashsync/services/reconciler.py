from loguru import logger
from flashsync.connectors.base import DestinationConnector
from flashsync.errors import ReconciliationError, SyncConnectionError
from flashsync.models.schema import TableSpec, schemas_match

CREATED = "created"
UNCHANGED = "unchanged"
UPDATED = "updated"
RECREATED = "recreated"


class TableReconciler:
    """
    保证目标表存在且结构与推断结构一致

    处理顺序:
        1. 表不存在 -> 建表
        2. 结构一致 -> 不做任何操作
        3. 结构不同 -> 原地更新结构; 若目标以不安全迁移 (类型变更/必填字段删除)
           拒绝更新, 则删表重建。重建会丢弃表中全部数据, 由于后续加载总是整表
           覆盖, 丢失的只是即将被替换的旧数据。
    """

    def __init__(self, destination: DestinationConnector, allow_recreate: bool = True):
        self.destination = destination
        self.allow_recreate = allow_recreate

    async def reconcile(self, spec: TableSpec) -> str:
        """
        对齐目标表结构

        Returns:
            执行的动作: created / unchanged / updated / recreated

        Raises:
            ReconciliationError: 元数据读取、建表、非关键更新失败或重建失败
        """
        table = spec.name
        logger.info(f"Checking destination table {table}")
        try:
            current = await self.destination.get_table_schema(table)
        except SyncConnectionError:
            raise
        except Exception as e:
            raise ReconciliationError(f"failed to get table metadata: {e}", table=table) from e

        if current is None:
            logger.info(f"Table {table} not found, creating new table")
            await self._create(spec, "failed to create table")
            logger.info(f"Table {table} created successfully")
            return CREATED

        if schemas_match(current, spec.schema, table=table):
            logger.debug(f"Table {table} schema is up to date")
            return UNCHANGED

        logger.warning(f"Schema mismatch detected for {table}, attempting update")
        try:
            await self.destination.update_table_schema(spec)
        except Exception as e:
            if not self.destination.is_unsafe_schema_change(e):
                raise ReconciliationError(f"failed to update table schema: {e}", table=table) from e
            return await self._recreate(spec, e)

        logger.info(f"Table {table} schema updated successfully")
        return UPDATED

    async def _recreate(self, spec: TableSpec, cause: BaseException) -> str:
        table = spec.name
        logger.error(f"Critical schema error on {table}: {cause}")
        if not self.allow_recreate:
            raise ReconciliationError(
                f"unsafe schema change refused and recreate is disabled: {cause}", table=table
            ) from cause

        logger.bind(destructive=True).warning(
            f"DESTRUCTIVE: recreating table {table}, ALL EXISTING DATA WILL BE DELETED"
        )
        try:
            await self.destination.delete_table(table)
        except Exception as e:
            raise ReconciliationError(f"failed to delete table with bad schema: {e}", table=table) from e
        logger.info(f"Table {table} deleted")

        await self._create(spec, "failed to recreate table with correct schema")
        logger.info(f"Table {table} successfully recreated with corrected schema")
        return RECREATED

    async def _create(self, spec: TableSpec, failure: str) -> None:
        try:
            await self.destination.create_table(spec)
        except Exception as e:
            raise ReconciliationError(f"{failure}: {e}", table=spec.name) from e
