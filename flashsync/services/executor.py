import asyncio
import io
import json
from typing import Optional
from loguru import logger
from flashsync.connectors.base import DestinationConnector, SourceConnector
from flashsync.errors import ExtractionError, LoadError, RowParseError, SerializationError
from flashsync.models.results import SyncOutcome
from flashsync.services.row_parser import Record, RowParser


def encode_record(record: Record) -> bytes:
    """一条记录编码为一行 JSON"""
    return json.dumps(record, ensure_ascii=False, allow_nan=False).encode("utf-8") + b"\n"


class ExtractLoadExecutor:
    """
    单表的 抽取 -> 内存缓冲 -> 批量加载

    整个结果集先写入内存缓冲 (每行一个 JSON 对象), 读完后再以整表覆盖的方式
    提交一次加载作业。没有抽取到任何行时不会提交加载, 目标表保持原样。
    """

    def __init__(self, destination: DestinationConnector, fetch_size: int = 1000,
                 load_timeout: Optional[float] = None):
        self.destination = destination
        self.fetch_size = fetch_size
        self.load_timeout = load_timeout

    async def execute(self, connector: SourceConnector, query: str, table_name: str,
                      parser: RowParser, source_name: Optional[str] = None) -> SyncOutcome:
        outcome = SyncOutcome(source=source_name or "", table=table_name)
        errors = {"table": table_name, "source": source_name}

        logger.info(f"Executing query: {query}")
        try:
            cursor = await connector.open_cursor(query)
        except Exception as e:
            raise ExtractionError(f"failed to query database: {e}", **errors) from e

        buffer = io.BytesIO()
        row_number = 0
        logger.debug("Starting data extraction to in-memory buffer")
        try:
            columns = cursor.columns
            while True:
                try:
                    rows = await cursor.fetch(self.fetch_size)
                except Exception as e:
                    raise ExtractionError(f"error during row iteration: {e}", **errors) from e
                if not rows:
                    break

                for row in rows:
                    row_number += 1
                    try:
                        record = parser.parse(row, columns, row_number=row_number)
                    except RowParseError as e:
                        logger.error(f"Failed to parse row {row_number}: {e}")
                        outcome.rows_skipped += 1
                        continue

                    try:
                        buffer.write(encode_record(record))
                    except (TypeError, ValueError) as e:
                        logger.error(f"Failed to write row {row_number} to memory buffer: {e}")
                        raise SerializationError(
                            f"failed to write row {row_number} to memory buffer: {e}", **errors
                        ) from e
                    outcome.rows_extracted += 1
        finally:
            await cursor.close()

        logger.info(
            f"Extraction complete: {outcome.rows_extracted} rows extracted, "
            f"{outcome.rows_skipped} rows skipped"
        )
        if outcome.rows_skipped > 0:
            logger.warning(f"Some rows were skipped during parsing: {outcome.rows_skipped}")

        if outcome.rows_extracted == 0:
            logger.info("No rows to load. Job finished.")
            return outcome

        await self._load(table_name, buffer.getvalue(), errors)
        outcome.loaded = True
        return outcome

    async def _load(self, table_name: str, payload: bytes, errors: dict) -> None:
        logger.info(f"Starting load job for {table_name} ({len(payload)} bytes)")
        try:
            job = await self.destination.start_load(table_name, payload)
        except Exception as e:
            logger.error(f"Failed to create load job: {e}")
            raise LoadError(f"failed to create load job: {e}", **errors) from e

        try:
            failure = await self.destination.wait_for_load(job, timeout=self.load_timeout)
        except asyncio.CancelledError:
            logger.warning(f"Cancelled while waiting for load job on {table_name}, cancelling job")
            try:
                await self.destination.cancel_load(job)
            except Exception as e:
                logger.warning(f"Failed to cancel load job on {table_name}: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to wait for load job to complete: {e}")
            raise LoadError(f"failed to wait for load job to complete: {e}", **errors) from e

        if failure:
            logger.error(f"Load job failed: {failure}")
            raise LoadError(f"load job failed: {failure}", **errors)

        logger.info(f"Load job completed successfully for {table_name}")
