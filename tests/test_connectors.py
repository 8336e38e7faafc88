import datetime
import decimal
import json
import unittest
from pymysql.constants import FIELD_TYPE
from flashsync.connectors.factory import ConnectorFactory
from flashsync.connectors.mysql import MySQLConnector
from flashsync.connectors.postgresql import PostgreSQLConnector
from flashsync.connectors.sqlserver import SQLServerConnector
from flashsync.errors import SyncConnectionError
from flashsync.models.config import DatabaseConfig, PoolConfig
from flashsync.services.executor import encode_record
from flashsync.services.row_parser import RowParser
from flashsync.services.schema_inference import map_native_type
from flashsync.models.schema import SemanticType
from tests.helpers import database_config


class TestMySQLConnector(unittest.TestCase):
    def setUp(self):
        self.connector = MySQLConnector(database_config("finance_db"), PoolConfig(max_open=10, max_idle=4, max_lifetime=60))

    def test_type_names(self):
        cases = [
            ((FIELD_TYPE.LONG, 11), "INT", SemanticType.INTEGER),
            ((FIELD_TYPE.LONGLONG, 20), "BIGINT", SemanticType.INTEGER),
            ((FIELD_TYPE.TINY, 4), "TINYINT", SemanticType.INTEGER),
            ((FIELD_TYPE.TINY, 1), "BOOLEAN", SemanticType.BOOLEAN),
            ((FIELD_TYPE.NEWDECIMAL, 12), "DECIMAL", SemanticType.FLOAT),
            ((FIELD_TYPE.VAR_STRING, 255), "VARCHAR", SemanticType.STRING),
            ((FIELD_TYPE.BLOB, 65535), "TEXT", SemanticType.STRING),
            ((FIELD_TYPE.DATE, 10), "DATE", SemanticType.DATE),
            ((FIELD_TYPE.DATETIME, 19), "DATETIME", SemanticType.TIMESTAMP),
            ((FIELD_TYPE.TIME, 10), "TIME", SemanticType.STRING),
        ]
        for (type_code, length), name, semantic in cases:
            with self.subTest(name=name):
                description = ("col", type_code, None, length, length, 0, True)
                self.assertEqual(self.connector.column_type_name(description), name)
                self.assertIs(map_native_type(name), semantic)

    def test_bit_column_loads_as_string(self):
        column = self.connector.describe_column(("flag", FIELD_TYPE.BIT, None, 1, 1, 0, True))
        self.assertEqual(column.type_name, "BINARY")
        self.assertIs(map_native_type(column.type_name), SemanticType.STRING)

        record = RowParser("%Y-%m-%d").parse((b"\x01",), [column.name])
        self.assertEqual(json.loads(encode_record(record)), {"flag": "\x01"})

    def test_nullability_from_description(self):
        required = self.connector.describe_column(("id", FIELD_TYPE.LONG, None, 11, 11, 0, False))
        nullable = self.connector.describe_column(("name", FIELD_TYPE.VARCHAR, None, 50, 50, 0, True))
        self.assertIs(required.nullable, False)
        self.assertIs(nullable.nullable, True)

    def test_select_query(self):
        self.assertEqual(self.connector.select_query("income"), "SELECT * FROM `finance_db`.`income`")
        self.assertEqual(self.connector.select_query("income", limit=1), "SELECT * FROM `finance_db`.`income` LIMIT 1")

    def test_engine_options_follow_pool_config(self):
        options = self.connector.engine_options()
        self.assertEqual(options["pool_size"], 4)
        self.assertEqual(options["max_overflow"], 6)
        self.assertEqual(options["pool_recycle"], 60)

    def test_idle_never_exceeds_open(self):
        connector = MySQLConnector(database_config(), PoolConfig(max_open=2, max_idle=10, max_lifetime=0))
        options = connector.engine_options()
        self.assertEqual((options["pool_size"], options["max_overflow"]), (2, 0))
        self.assertNotIn("pool_recycle", options)

    def test_url(self):
        config = DatabaseConfig("mysql", "db.internal", 3306, "etl", "p@ss:word", "finance_db")
        url = MySQLConnector(config).build_url()
        self.assertEqual(url.drivername, "mysql+pymysql")
        self.assertEqual(url.password, "p@ss:word")
        self.assertEqual(url.query["charset"], "utf8mb4")


class TestPostgreSQLConnector(unittest.TestCase):
    def setUp(self):
        config = DatabaseConfig("postgresql", "localhost", 5432, "etl", "secret", "finance", schema="ledger")
        self.connector = PostgreSQLConnector(config)

    def test_type_names(self):
        self.assertEqual(self.connector.column_type_name(("id", 23, None, 4, None, None, None)), "INT4")
        self.assertEqual(self.connector.column_type_name(("ts", 1184, None, 8, None, None, None)), "TIMESTAMPTZ")
        self.assertIs(map_native_type("INT4"), SemanticType.INTEGER)
        self.assertIs(map_native_type("TIMESTAMPTZ"), SemanticType.TIMESTAMP)
        self.assertIs(map_native_type(self.connector.column_type_name(("x", 99999))), SemanticType.STRING)

    def test_nullability_unknown(self):
        column = self.connector.describe_column(("id", 23, None, 4, None, None, None))
        self.assertIsNone(column.nullable)

    def test_select_query_uses_schema(self):
        self.assertEqual(self.connector.select_query("income", limit=1), 'SELECT * FROM "ledger"."income" LIMIT 1')

    def test_search_path(self):
        self.assertEqual(self.connector.build_url().query["options"], "-csearch_path=ledger")


class TestSQLServerConnector(unittest.TestCase):
    def setUp(self):
        config = DatabaseConfig("sqlserver", "localhost", 1433, "sa", "secret", "finance", trust_server_certificate=True)
        self.connector = SQLServerConnector(config)

    def test_type_names(self):
        cases = {
            int: SemanticType.INTEGER,
            decimal.Decimal: SemanticType.FLOAT,
            str: SemanticType.STRING,
            bool: SemanticType.BOOLEAN,
            datetime.datetime: SemanticType.TIMESTAMP,
            datetime.date: SemanticType.DATE,
        }
        for type_code, semantic in cases.items():
            with self.subTest(type_code=type_code):
                name = self.connector.column_type_name(("c", type_code, None, 10, 10, 0, True))
                self.assertIs(map_native_type(name), semantic)

    def test_select_query_uses_top(self):
        self.assertEqual(self.connector.select_query("income", limit=1), "SELECT TOP 1 * FROM [dbo].[income]")
        self.assertEqual(self.connector.select_query("income"), "SELECT * FROM [dbo].[income]")

    def test_url(self):
        query = self.connector.build_url().query
        self.assertEqual(query["TrustServerCertificate"], "yes")
        self.assertEqual(query["driver"], "ODBC Driver 17 for SQL Server")


class TestConnectorFactory(unittest.IsolatedAsyncioTestCase):
    def test_known_types(self):
        self.assertIsInstance(ConnectorFactory.get_connector("MySQL", database_config()), MySQLConnector)
        self.assertIsInstance(ConnectorFactory.get_connector("postgresql", database_config()), PostgreSQLConnector)
        self.assertIsInstance(ConnectorFactory.get_connector("sqlserver", database_config()), SQLServerConnector)

    def test_each_call_returns_new_connector(self):
        first = ConnectorFactory.get_connector("mysql", database_config())
        second = ConnectorFactory.get_connector("mysql", database_config())
        self.assertIsNot(first, second)

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            ConnectorFactory.get_connector("oracle", database_config())

    async def test_query_before_connect(self):
        connector = ConnectorFactory.get_connector("mysql", database_config())
        with self.assertRaises(SyncConnectionError):
            await connector.open_cursor("SELECT 1")


if __name__ == '__main__':
    unittest.main()
