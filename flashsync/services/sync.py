import asyncio
import time
from typing import Callable, Dict, List, Optional
from loguru import logger
from flashsync.connectors.base import DestinationConnector, SourceConnector
from flashsync.connectors.factory import ConnectorFactory
from flashsync.errors import SyncError, SyncTimeoutError
from flashsync.models.config import DataSource, SyncConfig, SyncTask, expand_tasks
from flashsync.models.results import RunResult, SyncOutcome
from flashsync.models.schema import TableSpec
from flashsync.services.executor import ExtractLoadExecutor
from flashsync.services.reconciler import TableReconciler
from flashsync.services.row_parser import RowParser
from flashsync.services.schema_inference import SchemaInferencer

ConnectorBuilder = Callable[..., SourceConnector]


class JobOrchestrator:
    """
    为每个 (数据源, 表) 并发运行一次同步任务

    任务数量等于所有数据源的表总数, 不设并发上限。第一个失败的任务会取消其余
    仍在运行的任务, 所有任务结束后才返回; 返回的错误只有第一个失败原因。
    """

    def __init__(self, config: SyncConfig, destination: DestinationConnector,
                 connector_builder: ConnectorBuilder = ConnectorFactory.get_connector):
        self.config = config
        self.destination = destination
        self.connector_builder = connector_builder
        self.inferencer = SchemaInferencer()
        self.reconciler = TableReconciler(destination, allow_recreate=config.allow_recreate)
        self.executor = ExtractLoadExecutor(
            destination,
            fetch_size=config.fetch_size,
            load_timeout=config.load_timeout,
        )
        self.parser = RowParser(config.date_format)

    async def run_table(self, task: SyncTask) -> SyncOutcome:
        """同步单个表: 推断结构 -> 对齐目标表 -> 抽取并加载"""
        source = task.source
        with logger.contextualize(source=source.name, table=task.table):
            logger.info(f"Starting job {task.name}")
            start_time = time.time()
            connector = self.connector_builder(source.connection.type, source.connection, self.config.pool)
            try:
                await connector.connect()
                sample_query = connector.select_query(task.table, limit=1)
                source_query = connector.select_query(task.table)

                schema = await self.inferencer.infer(connector, sample_query)
                decision = await self.reconciler.reconcile(TableSpec(name=task.table, schema=schema))
                logger.info(f"Destination table {task.table}: {decision}")

                outcome = await self.executor.execute(
                    connector, source_query, task.table, self.parser, source_name=source.name
                )
            except SyncError as e:
                if e.source is None:
                    e.source = source.name
                if e.table is None:
                    e.table = task.table
                raise
            finally:
                await connector.disconnect()

            logger.success(
                f"Job {task.name} completed in {time.time() - start_time:.2f}s: "
                f"{outcome.rows_extracted} rows loaded, {outcome.rows_skipped} skipped"
            )
            return outcome

    async def run(self, sources: Optional[List[DataSource]] = None) -> RunResult:
        """同步所有配置的表"""
        if sources is None:
            sources = self.config.sources
        sync_tasks = expand_tasks(sources)
        result = RunResult()
        if not sync_tasks:
            logger.warning("No tables configured, nothing to sync")
            return result

        timeout = self.config.sync_timeout
        logger.info(f"开始同步 {len(sync_tasks)} 个表, 超时: {timeout}秒")
        start_time = time.time()

        running: Dict[asyncio.Task, SyncTask] = {
            asyncio.create_task(self.run_table(task), name=task.name): task
            for task in sync_tasks
        }
        try:
            result.error = await self._wait_first_error(list(running), timeout)
        finally:
            pending = [t for t in running if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                logger.warning(f"Cancelling {len(pending)} running jobs")
                await asyncio.gather(*pending, return_exceptions=True)

        result.outcomes = [self._outcome(t, task) for t, task in running.items()]
        result.duration = time.time() - start_time
        self._log_summary(result)
        return result

    async def _wait_first_error(self, tasks: List[asyncio.Task], timeout: Optional[float]) -> Optional[BaseException]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout else None
        pending = set(tasks)
        while pending:
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_EXCEPTION
            )
            if not done:
                logger.error(f"Sync timed out after {timeout}s, cancelling remaining jobs")
                return SyncTimeoutError(f"sync timed out after {timeout}s")

            # 同一轮可能有多个任务失败, 按创建顺序取第一个
            failed = [t for t in tasks if t in done and not t.cancelled() and t.exception() is not None]
            if failed:
                error = failed[0].exception()
                logger.error(f"Job {failed[0].get_name()} failed: {error}")
                return error
        return None

    def _outcome(self, t: asyncio.Task, task: SyncTask) -> SyncOutcome:
        if t.cancelled():
            return SyncOutcome(source=task.source.name, table=task.table, cancelled=True)
        error = t.exception()
        if error is not None:
            return SyncOutcome(source=task.source.name, table=task.table, error=error)
        return t.result()

    def _log_summary(self, result: RunResult) -> None:
        for outcome in result.outcomes:
            message = (
                f"{outcome.source}.{outcome.table}: {outcome.status}, "
                f"extracted={outcome.rows_extracted}, skipped={outcome.rows_skipped}"
            )
            if outcome.error is not None and outcome.error is not result.error:
                # 只上报第一个错误, 其余的记录在日志里
                logger.warning(f"{message}, suppressed error: {outcome.error}")
            elif outcome.succeeded:
                logger.info(message)
            else:
                logger.error(message)

        if result.ok:
            logger.success(f"所有表同步完成，总耗时: {result.duration:.2f}秒")
        else:
            logger.error(f"同步失败，总耗时: {result.duration:.2f}秒: {result.error}")
