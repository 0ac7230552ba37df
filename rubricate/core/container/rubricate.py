from __future__ import annotations

import datetime
import os
import sys
import types
from pathlib import Path

import pydantic as p
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Container, Object, Provider, Resource, Singleton

import rubricate
from rubricate.model import BaseModel, DeploymentEnvironment, ProviderType

from ..config import Secrets, Settings
from ..config.secrets import LLMSecrets
from ..di import NotReady, register_loader_containers
from ..provider import LoggingProvider, TimestampProvider
from .analysis import AnalysisContainer
from .llm import LLMContainer
from .storage import StorageContainer
from .template import TemplateContainer


class BootConfiguration(BaseModel):
    debug: bool
    env: DeploymentEnvironment
    config_root: p.AnyUrl
    secrets_path: p.AnyUrl | None = None
    override: tuple[str, ...]


def unconfigured_providers(secrets: LLMSecrets | None) -> list[ProviderType]:
    """Providers without an API key; analyses routed to them fail at the first call."""
    return [pt for pt in ProviderType if secrets is None or getattr(secrets, pt.value) is None]


class RubricateContainer(DeclarativeContainer):
    config: Configuration = Configuration()
    secrets: Configuration = Configuration()

    debug: Provider[bool] = Singleton(bool)
    env: Provider[DeploymentEnvironment] = Singleton(DeploymentEnvironment)
    root: Object[NotReady | Path] = Object(NotReady())

    logging: Provider[LoggingProvider] = Resource(LoggingProvider, config=config.logging, debug=debug)
    storage: Provider[StorageContainer] = Container(
        StorageContainer, config=config.storage, secrets=secrets, logging=logging, root=root
    )
    template: Provider[TemplateContainer] = Container(TemplateContainer, config=config.template)
    llm: Provider[LLMContainer] = Container(LLMContainer, config=config.llm, secrets=secrets)

    utcnow: Provider[TimestampProvider] = Object(lambda: datetime.datetime.now(datetime.UTC))

    analysis: Provider[AnalysisContainer] = Container(
        AnalysisContainer,
        config=config.analysis,
        llm_env=template.llm,
        invoker=llm.invoker,
        store=storage.object.store,
        session=storage.persistent.session,
        utcnow=utcnow,
    )

    _boot_config: Provider[BootConfiguration | NotReady] = Object(NotReady())

    @staticmethod
    def boot(
        ct: RubricateContainer,
        /,
        debug: bool,
        env: DeploymentEnvironment,
        config_root: p.FileUrl,
        secrets_path: p.AnyUrl | None = None,
        override: tuple[str, ...] | None = None,
        wiring: tuple[str | types.ModuleType, ...] | None = None,
    ):
        if config_root.scheme != "file":
            raise ValueError(f"unsupported scheme for config root: {config_root.scheme}")
        ps = Settings(env=env, root=config_root, override=override or ())
        ct.config.from_pydantic(ps)
        ct.wire(packages=["rubricate"])
        if wiring:
            ct.wire(modules=wiring)
        if imported := [mod for name, mod in sys.modules.items() if name.startswith("rubricate.")]:
            ct.wire(modules=imported)
        register_loader_containers(ct, packages=["rubricate"])

        logger = ct.logging().get_logger()

        for ov in ps.override:
            k, v = ov.split("=", 1)
            logger.info(
                "overriding configuration parameter",
                extra={
                    "key": k,
                    "value": v,
                },
            )

        ct.debug.override(debug)
        ct.env.override(env)
        ct.root.override(Path(os.path.dirname(rubricate.__file__)).parent)
        if debug:
            ct.logging().capture_warnings(True)

        # secrets.yaml sits beside the settings unless a path is given
        secrets = Secrets(env=env, root=secrets_path or config_root)
        ct.secrets.from_pydantic(secrets)

        default_provider = ProviderType(ct.config.llm.default_provider())
        missing = unconfigured_providers(ct.llm.llm_secrets())
        if default_provider in missing:
            logger.warning("default LLM provider has no API key", extra={"provider": default_provider.value})

        logger.debug(
            "configuration finished",
            extra={
                "config": str(config_root),
                "secrets": str(secrets_path or config_root),
                "providers": [pt.value for pt in ProviderType if pt not in missing],
            },
        )
        ct._boot_config.override(
            BootConfiguration(
                debug=debug, env=env, config_root=config_root, secrets_path=secrets_path, override=override or ()
            )
        )
