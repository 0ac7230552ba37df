import functools
import os
import typing as t
from pathlib import Path

import pydantic as p
import yaml
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource
from pydantic_settings import SettingsError

import rubricate.lib.util as util
from rubricate.model import DeploymentEnvironment


class CurrentState(t.TypedDict, total=False):
    root: t.Required[p.AnyUrl]
    env: t.Required[DeploymentEnvironment]


class SettingsCurrentState(CurrentState, total=False):
    override: t.Required[tuple[str, ...]]


def assign_path(tree: dict[str, t.Any], path: t.Sequence[str], value: t.Any) -> None:
    """Set ``value`` at a dotted path of nested dicts, creating the intermediate ones."""
    target = tree
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value


class SettingsSource(PydanticBaseSettingsSource):
    def __call__(self) -> dict[str, t.Any]:
        # we expect init kwargs to have config root and env in them
        data: dict[str, t.Any] = {}

        for field_name, field in self.settings_cls.model_fields.items():
            try:
                field_value, field_key, value_is_complex = self.get_field_value(field, field_name)
                field_value = self.prepare_field_value(field_name, field, field_value, value_is_complex)
            except KeyError:
                continue
            except ValueError as e:
                raise SettingsError(f"error parsing value for field {field_name!r} from source {self!r}") from e
            except Exception as e:
                raise SettingsError(f"error getting value for field {field_name!r} from source {self!r}") from e

            data[field_key] = field_value
        return data


class OverrideSettingsSource(SettingsSource):
    """
    Dotted `-o key.path=value` overrides; values are parsed as YAML. Must run
    before the YAML source, since earlier sources take precedence
    """

    @functools.cached_property
    def parsed_options(self) -> dict[str, t.Any]:
        current_state = t.cast(SettingsCurrentState, self.current_state)
        override = current_state["override"]
        od: dict[str, t.Any] = {}
        for o in override:
            k, v = [s.strip() for s in o.split("=", 1)]
            assign_path(od, k.split("."), yaml.safe_load(v))
        return od

    def get_field_value(self, field: p.fields.FieldInfo, field_name: str) -> tuple[t.Any, str, bool]:
        skip_keys = {"env", "root", "override"}
        if field_name in skip_keys or field_name not in self.parsed_options:
            raise KeyError(field_name)
        val = self.parsed_options[field_name]
        return val, field_name, isinstance(val, dict)

    def prepare_field_value(
        self, field_name: str, field: p.fields.FieldInfo, value: t.Any, value_is_complex: bool
    ) -> t.Any:
        return value


class YAMLCascadingSettingsSource(SettingsSource):
    @functools.cached_property
    def load_paths(self) -> list[Path]:
        current_state = t.cast(SettingsCurrentState, self.current_state)
        root = current_state["root"]
        assert root.scheme == "file" and root.path is not None, "root is not a legible location of YAML files"
        env = current_state["env"]
        paths = [Path(root.path)]
        if env is not DeploymentEnvironment.Local:
            # we don't have a special directory for local/ that's just root
            paths.append(Path(root.path) / "env.d" / env.value)
        return paths

    def get_field_value(self, field: p.fields.FieldInfo, field_name: str) -> tuple[t.Any, str, bool]:
        yamls: list[str] = []
        for path in self.load_paths:
            fn = path / f"{field_name}.yaml"
            if fn.exists():
                yamls.append(fn.read_text(encoding="utf8"))
        if not yamls:
            raise KeyError(field_name)
        return yamls, field_name, True

    def prepare_field_value(
        self, field_name: str, field: p.fields.FieldInfo, value: t.Any, value_is_complex: bool
    ) -> t.Any:
        if not value_is_complex:
            return super().prepare_field_value(field_name, field, value, value_is_complex)

        # for complex values, we expect to be given a list[str] representing
        # the yamls encountered along the load_paths
        if not isinstance(value, list):
            raise ValueError(field_name)
        # later files (environment directories) are merged over earlier ones
        merged: dict[t.Any, t.Any] = {}
        for doc in t.cast(list[str], value):
            loaded = yaml.safe_load(doc)
            if not isinstance(loaded, dict):
                return loaded
            merged = util.deep_update(merged, t.cast(dict[t.Any, t.Any], loaded))
        return merged


class SecretsTreeSource(SettingsSource):
    """A source backed by one nested dict of secrets, keyed by top-level field."""

    @property
    def secrets(self) -> dict[str, t.Any]:
        raise NotImplementedError

    def get_field_value(self, field: p.fields.FieldInfo, field_name: str) -> tuple[t.Any, str, bool]:
        skip_keys = {"env", "root", "override"}
        # skip_keys are checked first: reading self.secrets may need current_state["root"]
        if field_name in skip_keys or field_name not in self.secrets:
            raise KeyError(field_name)
        val = self.secrets[field_name]
        return val, field_name, isinstance(val, dict)

    def prepare_field_value(
        self, field_name: str, field: p.fields.FieldInfo, value: t.Any, value_is_complex: bool
    ) -> t.Any:
        return value


class YAMLSecretsSource(SecretsTreeSource):
    """
    Read secrets from plain YAML: `root` is either a secrets file or a
    directory holding `secrets.yaml` (plus `env.d/{env}/secrets.yaml` outside
    the local environment)
    """

    @functools.cached_property
    def load_paths(self) -> list[Path]:
        current_state = t.cast(CurrentState, self.current_state)
        root = current_state["root"]
        if root.scheme != "file" or root.path is None:
            return []
        rootp = Path(root.path)
        if rootp.is_file():
            return [rootp]
        env = current_state["env"]
        paths = [rootp / "secrets.yaml"]
        if env is not DeploymentEnvironment.Local:
            paths.append(rootp / "env.d" / env.value / "secrets.yaml")
        return [path for path in paths if path.exists()]

    @functools.cached_property
    def secrets(self) -> dict[str, t.Any]:
        merged: dict[str, t.Any] = {}
        for path in self.load_paths:
            loaded = yaml.safe_load(path.read_text(encoding="utf8")) or {}
            merged = util.deep_update(merged, loaded)
        return merged


class VendorEnvironmentSource(SecretsTreeSource):
    """
    The variables vendor SDKs read on their own (`OPENAI_API_KEY`,
    `AWS_ACCESS_KEY_ID`, ...), placed where the secrets model expects them.
    Ranked last, so the secrets file and `RUBRICATE_` variables win
    """

    # earlier names win when two name the same secret
    variables: t.ClassVar[dict[str, tuple[str, ...]]] = {
        "OPENAI_API_KEY": ("llm", "openai", "api_key"),
        "ANTHROPIC_API_KEY": ("llm", "anthropic", "api_key"),
        "GEMINI_API_KEY": ("llm", "google", "api_key"),
        "GOOGLE_API_KEY": ("llm", "google", "api_key"),
        "AWS_ACCESS_KEY_ID": ("object", "access_key_id"),
        "AWS_SECRET_ACCESS_KEY": ("object", "secret_access_key"),
    }

    def __init__(self, settings_cls: type[BaseSettings], environ: t.Mapping[str, str] | None = None):
        super().__init__(settings_cls)
        self.environ = os.environ if environ is None else environ

    @functools.cached_property
    def secrets(self) -> dict[str, t.Any]:
        tree: dict[str, t.Any] = {}
        assigned: set[tuple[str, ...]] = set()
        for name, path in self.variables.items():
            value = self.environ.get(name)
            if not value or path in assigned:
                continue
            assign_path(tree, path, value)
            assigned.add(path)
        return tree
