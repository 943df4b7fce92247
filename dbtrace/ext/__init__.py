from enum import Enum


class DatabaseSystem(str, Enum):
    SQLITE = "sqlite"
    MSSQL = "mssql"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
