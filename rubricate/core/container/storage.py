from __future__ import annotations

import typing as t
from pathlib import Path

import alembic.config
import sqlalchemy
import sqlalchemy.event
import sqlalchemy.orm
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Container, Factory, Object, Provider, Resource, Singleton
from sqlalchemy.engine.url import URL as DSN

import rubricate.lib.json as json
from rubricate.storage.object import LocalObjectStore, ObjectStore, S3ObjectStore

from ..config.secrets import ObjectSecrets, PostgresqlSecrets
from ..config.storage import ObjectSettings, PostgresqlSettings, StorageSettings
from ..di import NotReady
from ..provider import LoggingProvider


def provide_dsn(config: PostgresqlSettings, secrets: PostgresqlSecrets) -> DSN:
    return DSN.create(
        config.driver,
        port=config.port,
        host=str(config.host) if config.host else None,
        username=secrets.username.get_secret_value() if secrets.username else None,
        password=secrets.password.get_secret_value() if secrets.password else None,
        database=config.database,
    )


def provide_alembic_conf(
    migration_path: Path, config: PostgresqlSettings, secrets: PostgresqlSecrets, root: Path | NotReady
) -> alembic.config.Config:
    if isinstance(root, NotReady):
        raise RuntimeError("root path is unavailable")

    escaped_str = provide_dsn(config, secrets).render_as_string(hide_password=False).replace("%", "%%")

    ac = alembic.config.Config()
    ac.set_main_option("script_location", str(root / migration_path))
    ac.set_section_option("alembic", "sqlalchemy.url", escaped_str)
    ac.set_section_option("alembic", "file_template", "%%(year)d-%%(month).2d-%%(day).2d-%%(slug)s-%%(rev)s")
    return ac


def provide_engine(
    config: PostgresqlSettings, secrets: PostgresqlSecrets, logging: LoggingProvider
) -> sqlalchemy.Engine:
    logger = logging.get_logger()

    engine = sqlalchemy.create_engine(
        provide_dsn(config, secrets), json_serializer=json.dumps, json_deserializer=json.loads
    )
    sqlalchemy.event.listen(engine, "connect", register_timezone)
    logger.info(
        "initialized SQLAlchemy engine",
        extra={
            "driver": config.driver,
            "database": config.database,
            "host": config.host,
            "port": config.port,
        },
    )
    return engine


def provide_session(engine: sqlalchemy.Engine) -> sqlalchemy.orm.Session:
    """Create a new session; transactions are begun explicitly by its users."""
    maker = sqlalchemy.orm.sessionmaker(engine, expire_on_commit=False, autoflush=False)
    return maker(autobegin=False)


def provide_object_store(
    config: ObjectSettings, secrets: ObjectSecrets | None, root: Path | NotReady, logging: LoggingProvider
) -> ObjectStore:
    logger = logging.get_logger()

    if config.backend == "s3":
        import boto3

        client = boto3.client(
            "s3",
            region_name=config.s3_region,
            endpoint_url=str(config.s3_endpoint_url) if config.s3_endpoint_url else None,
            aws_access_key_id=secrets.access_key_id.get_secret_value() if secrets and secrets.access_key_id else None,
            aws_secret_access_key=(
                secrets.secret_access_key.get_secret_value() if secrets and secrets.secret_access_key else None
            ),
        )
        logger.info("initialized S3 object store", extra={"region": config.s3_region})
        return S3ObjectStore(client)

    base_path = config.local_path
    if not base_path.is_absolute():
        if isinstance(root, NotReady):
            raise RuntimeError("root path is unavailable")
        base_path = root / base_path
    logger.info("initialized local object store", extra={"path": str(base_path)})
    return LocalObjectStore(base_path)


def provide_object_secrets(secrets: dict[str, t.Any] | None) -> ObjectSecrets | None:
    return ObjectSecrets(**secrets) if secrets else None


class PersistentContainer(DeclarativeContainer):
    config = Configuration()
    secrets = Configuration()
    logging: Provider[LoggingProvider] = Resource()
    root: Provider[Path | NotReady] = Object()

    alembic_config: Provider[alembic.config.Config] = Singleton(
        provide_alembic_conf,
        migration_path=Path("migrations/"),
        config=config.postgresql.as_(PostgresqlSettings),
        secrets=secrets.postgresql.as_(PostgresqlSecrets),
        root=root,
    )
    engine: Provider[sqlalchemy.Engine] = Singleton(
        provide_engine,
        config=config.postgresql.as_(PostgresqlSettings),
        secrets=secrets.postgresql.as_(PostgresqlSecrets),
        logging=logging,
    )
    session: Provider[sqlalchemy.orm.Session] = Factory(provide_session, engine=engine)


class ObjectContainer(DeclarativeContainer):
    config = Configuration()
    secrets = Configuration()
    logging: Provider[LoggingProvider] = Resource()
    root: Provider[Path | NotReady] = Object()

    store: Provider[ObjectStore] = Singleton(
        provide_object_store,
        config=config.as_(ObjectSettings),
        secrets=Factory(provide_object_secrets, secrets.object),
        root=root,
        logging=logging,
    )


class StorageContainer(DeclarativeContainer):
    config: Provider[StorageSettings] = Configuration(strict=True)
    secrets: Provider[StorageSettings] = Configuration(strict=True)
    logging: Provider[LoggingProvider] = Resource()
    root: Provider[Path | NotReady] = Object()

    persistent: Provider[PersistentContainer] = Container(
        PersistentContainer, config=config.persistent, secrets=secrets, logging=logging, root=root
    )
    object: Provider[ObjectContainer] = Container(
        ObjectContainer, config=config.object, secrets=secrets, logging=logging, root=root
    )


def register_timezone(dbapi_conn: t.Any, _: t.Any) -> None:
    """Set connection timezone to UTC for consistent datetime handling.

    PostgreSQL TIMESTAMP WITH TIME ZONE stores timestamps in UTC but returns
    them converted to the connection's timezone. Setting UTC ensures consistent
    timezone-aware datetimes across all environments.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("SET TIMEZONE TO 'UTC'")
    cursor.close()
