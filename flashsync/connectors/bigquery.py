import asyncio
import io
from typing import Any, List, Optional
from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import bigquery
from loguru import logger
from flashsync.connectors.base import DestinationConnector
from flashsync.errors import SyncConnectionError
from flashsync.models.schema import FieldSpec, InferredSchema, TableSpec, type_name

# BigQuery 标准 SQL 类型名与旧版类型名的对应
_TYPE_ALIASES = {
    "INT64": "INTEGER",
    "FLOAT64": "FLOAT",
    "BOOL": "BOOLEAN",
}


def to_schema_fields(schema: InferredSchema) -> List[bigquery.SchemaField]:
    return [bigquery.SchemaField(f.name, type_name(f.type), mode=f.mode) for f in schema]


def from_schema_fields(fields: List[bigquery.SchemaField]) -> InferredSchema:
    result = []
    for field in fields:
        field_type = (field.field_type or "STRING").upper()
        result.append(FieldSpec(
            name=field.name,
            type=_TYPE_ALIASES.get(field_type, field_type),
            required=(field.mode or "NULLABLE").upper() == "REQUIRED",
        ))
    return tuple(result)


class BigQueryDestination(DestinationConnector):
    """
    BigQuery 目标端

    所有任务共享同一个 client, google-cloud 的 client 可以被多个线程同时使用。
    """

    def __init__(self, project_id: str, dataset_id: str, location: Optional[str] = None,
                 client: Optional[bigquery.Client] = None):
        self.project_id = project_id
        self.dataset_id = dataset_id
        self.location = location
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            try:
                self._client = bigquery.Client(project=self.project_id, location=self.location)
            except Exception as e:
                raise SyncConnectionError(f"failed to create BigQuery client for {self.project_id}: {e}") from e
            logger.info(f"BigQuery client created for project {self.project_id}")
        return self._client

    def table_id(self, table_name: str) -> str:
        return f"{self.project_id}.{self.dataset_id}.{table_name}"

    async def get_table_schema(self, table_name: str) -> Optional[InferredSchema]:
        try:
            table = await asyncio.to_thread(self.client.get_table, self.table_id(table_name))
        except NotFound:
            return None
        return from_schema_fields(table.schema)

    async def create_table(self, spec: TableSpec) -> None:
        table = bigquery.Table(self.table_id(spec.name), schema=to_schema_fields(spec.schema))
        await asyncio.to_thread(self.client.create_table, table)

    async def update_table_schema(self, spec: TableSpec) -> None:
        def _update():
            # get_table 带回 etag, update_table 用它做并发保护
            table = self.client.get_table(self.table_id(spec.name))
            table.schema = to_schema_fields(spec.schema)
            self.client.update_table(table, ["schema"])
        await asyncio.to_thread(_update)

    async def delete_table(self, table_name: str) -> None:
        await asyncio.to_thread(self.client.delete_table, self.table_id(table_name))

    def is_unsafe_schema_change(self, error: BaseException) -> bool:
        message = str(getattr(error, "message", None) or error)
        reasons = {
            item.get("reason")
            for item in (getattr(error, "errors", None) or [])
            if isinstance(item, dict)
        }
        unsafe = "changed type" in message or "is missing" in message
        return unsafe and ("invalid" in reasons or "invalid" in message.lower())

    async def start_load(self, table_name: str, payload: bytes) -> bigquery.LoadJob:
        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.NEWLINE_DELIMITED_JSON,
            write_disposition=bigquery.WriteDisposition.WRITE_TRUNCATE,
        )
        return await asyncio.to_thread(
            self.client.load_table_from_file,
            io.BytesIO(payload),
            self.table_id(table_name),
            job_config=job_config,
        )

    async def wait_for_load(self, job: Any, timeout: Optional[float] = None) -> Optional[str]:
        try:
            await asyncio.to_thread(job.result, timeout=timeout)
        except GoogleAPICallError:
            # 作业本身失败时 error_result 有值, 否则是等待过程出错
            if job.error_result:
                return job.error_result.get("message") or str(job.error_result)
            raise
        if job.error_result:
            return job.error_result.get("message") or str(job.error_result)
        return None

    async def cancel_load(self, job: Any) -> None:
        await asyncio.to_thread(job.cancel)

    async def close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None
