"""Database schema migrations, driven through alembic."""

from __future__ import annotations

import alembic.command
import alembic.config

import rubricate.lib.cli as click
from rubricate.core import di

AlembicConfig = alembic.config.Config


@click.group("schema")
def schema():
    """Inspect and migrate the evaluation database."""
    ...


@schema.command()
@click.option("--verbose", "-v", is_flag=True, default=False)
@di.inject
def current(verbose: bool, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]):
    """Show the revision the database is at."""
    alembic.command.current(alembic_conf, verbose=verbose)


@schema.command()
@click.argument("message")
@click.option("--autogenerate/--empty", default=True, help="diff the tables against the database")
@di.inject
def generate(
    message: str, autogenerate: bool, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]
):
    """Write a new revision file described by MESSAGE."""
    alembic.command.revision(alembic_conf, message, autogenerate=autogenerate)


@schema.command()
@click.argument("revision", default="head")
@click.option("--sql", is_flag=True, default=False, help="print the DDL instead of running it")
@di.inject
def up(revision: str, sql: bool, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]):
    """Upgrade to REVISION (default: head)."""
    alembic.command.upgrade(alembic_conf, revision, sql=sql)


@schema.command()
@click.argument("revision")
@click.option("--sql", is_flag=True, default=False, help="print the DDL instead of running it")
@di.inject
def down(revision: str, sql: bool, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]):
    """Downgrade to REVISION, e.g. -1 or base."""
    alembic.command.downgrade(alembic_conf, revision, sql=sql)


@schema.command()
@click.option("--verbose", "-v", is_flag=True, default=False)
@di.inject
def history(verbose: bool, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]):
    alembic.command.history(alembic_conf, verbose=verbose, indicate_current=True)


@schema.command()
@click.argument("revision")
@di.inject
def stamp(revision: str, alembic_conf: AlembicConfig = di.Provide["storage.persistent.alembic_config"]):
    """Mark the database as being at REVISION without migrating."""
    alembic.command.stamp(alembic_conf, revision)
