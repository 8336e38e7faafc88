"""MySQL/PostgreSQL/SQL Server 到 BigQuery 的全表快照同步"""

__version__ = "0.2.0"
