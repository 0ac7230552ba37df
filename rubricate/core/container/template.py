import pathlib

import jinja2
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Configuration, Provider, ThreadSafeSingleton

from rubricate.core import di


class TemplateContainer(DeclarativeContainer):
    @staticmethod
    @di.inject
    def provide_llm_env(template_path: str, root_path: pathlib.Path = di.Provide["root"]) -> jinja2.Environment:
        """Provide Jinja2 environment for LLM prompt templates.

        Prompts use no autoescape, strip block whitespace and get a `score`
        filter rendering 5.0 as "5".
        """
        import jinja2

        import rubricate.lib.json
        from rubricate.lib.util import format_score

        env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(root_path.joinpath(template_path)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.StrictUndefined,
        )
        env.filters["score"] = format_score
        env.policies.update({
            "json.dumps_function": rubricate.lib.json.dumps,
        })
        return env

    config: Configuration = Configuration(strict=True)
    llm: Provider[jinja2.Environment] = ThreadSafeSingleton(provide_llm_env, config.llm_path)
