import logging
import os
from typing import Dict, Optional

import psycopg

module_logger = logging.getLogger(__name__)

DEFAULT_DB_PARAMS: Dict[str, str] = {
    "dbname": os.environ.get("PG_DATABASE", "gis"),
    "user": os.environ.get("PG_USER", "osmuser"),
    "password": os.environ.get("PG_PASSWORD", "yourStrongPasswordHere"),
    "host": os.environ.get("PG_HOST", "localhost"),
    "port": os.environ.get("PG_PORT", "5432"),
}


def get_db_connection(
    db_params: Optional[Dict[str, str]] = None,
    autocommit: bool = False,
) -> Optional[psycopg.Connection]:
    """
    Attempts to establish a connection to a PostgreSQL database using Psycopg 3,
    building the connection string from the provided parameters layered over
    DEFAULT_DB_PARAMS.

    Args:
        db_params (Optional[Dict[str, str]]): Connection parameters such as
            dbname, user, password, host, and port. Missing keys fall back to
            DEFAULT_DB_PARAMS.
        autocommit (bool): Open the connection in autocommit mode.

    Returns:
        Optional[psycopg.Connection]: The connection, or None if it could not
        be established. The failure is logged.
    """
    params_to_use = DEFAULT_DB_PARAMS.copy()
    if db_params:
        params_to_use.update(db_params)

    if params_to_use.get("password") == "yourStrongPasswordHere":
        module_logger.critical(
            "CRITICAL: Default placeholder password is being used for database "
            "connection. Please configure a strong password in the config file "
            "or via the PG_PASSWORD environment variable."
        )

    conn_kwargs = {
        "dbname": params_to_use.get("dbname"),
        "user": params_to_use.get("user"),
        "password": params_to_use.get("password"),
        "host": params_to_use.get("host"),
        "port": params_to_use.get("port"),
    }
    conn_kwargs_filtered = {
        k: v for k, v in conn_kwargs.items() if v is not None
    }

    dsn_parts = [
        f"{key}={value}" for key, value in conn_kwargs_filtered.items()
    ]
    conninfo_str = " ".join(dsn_parts)
    log_db_details = {
        k: v for k, v in conn_kwargs_filtered.items() if k != "password"
    }

    try:
        module_logger.debug(
            f"Attempting to connect to database using Psycopg 3 with parameters: {log_db_details}"
        )
        conn = psycopg.connect(conninfo_str, autocommit=autocommit)
        module_logger.info(
            f"Connected to database {log_db_details.get('dbname', 'N/A')} on "
            f"{log_db_details.get('host', 'N/A')}:{log_db_details.get('port', 'N/A')} using Psycopg 3."
        )
        return conn
    except psycopg.OperationalError as e:
        module_logger.error(
            f"Psycopg 3 database connection failed (OperationalError): {e}",
            exc_info=True,
        )
    except psycopg.Error as e:
        module_logger.error(
            f"Psycopg 3 database connection failed: {e}", exc_info=True
        )
    return None
