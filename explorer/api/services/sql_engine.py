from typing import Any, Dict, Union
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL
from sqlalchemy.pool import QueuePool
from .models import MySQLConnection, PostgresConnection


DRIVERS = {
    "postgresql": "postgresql+psycopg",
    "mysql": "mysql+pymysql",
}


def connection_url(connection: Union[PostgresConnection, MySQLConnection]) -> URL:
    return URL.create(
        DRIVERS[connection.provider],
        username=connection.username,
        password=connection.password or None,
        host=connection.host,
        port=connection.port,
        database=connection.database,
    )


def connect_args(connection: Union[PostgresConnection, MySQLConnection], connect_timeout: int) -> Dict[str, Any]:
    args: Dict[str, Any] = {"connect_timeout": connect_timeout}
    if connection.ssl:
        # Encrypted, certificate not verified
        if connection.provider == "postgresql":
            args["sslmode"] = "require"
        else:
            args["ssl"] = {"check_hostname": False}
    return args


def create_sql_engine(
    connection: Union[PostgresConnection, MySQLConnection],
    pool_size: int = 1,
    connect_timeout: int = 5,
) -> Engine:
    """Short-lived engine owned by a single gateway call; the caller disposes it."""
    return create_engine(
        connection_url(connection),
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        connect_args=connect_args(connection, connect_timeout),
        future=True,
    )
