"""Migration scope: the immutable configuration value threaded through a run."""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import toml

from featureslice.core.exceptions import ConfigError
from featureslice.core.models import ApiContractEntry, Operation, SymbolKind

DEFAULT_KIND_BUCKETS: Mapping[SymbolKind, str] = MappingProxyType(
    {
        SymbolKind.COMPONENT: "components",
        SymbolKind.PAGE: "pages",
        SymbolKind.HOOK: "hooks",
        SymbolKind.CONTEXT: "context",
        SymbolKind.TYPE: "types",
        SymbolKind.UTIL: "utils",
        SymbolKind.API_CALL: "api",
        SymbolKind.ASSET: "assets",
    }
)

DEFAULT_PERSISTENCE_CALLS: Mapping[str, Operation] = MappingProxyType(
    {
        "localStorage.getItem": Operation.READ,
        "localStorage.setItem": Operation.WRITE,
        "localStorage.removeItem": Operation.DELETE,
        "sessionStorage.getItem": Operation.READ,
        "sessionStorage.setItem": Operation.WRITE,
        "sessionStorage.removeItem": Operation.DELETE,
        "Object.keys": Operation.LIST,
    }
)

DEFAULT_CALL_TEMPLATE = "api.{name}({args})"
DEFAULT_IMPORT_LINE = "import { api } from '@/api/client';"

_FEATURE_NAME = re.compile(r"^[a-z][a-z0-9-]*$")


@dataclass(frozen=True)
class Feature:
    """An in-scope functional area with its entry points and resources."""

    name: str
    entry_points: tuple[str, ...]
    resources: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PersistenceInterface:
    """The local persistence calls to replace, and how replacements look."""

    calls: Mapping[str, Operation] = field(default_factory=lambda: DEFAULT_PERSISTENCE_CALLS)
    call_template: str = DEFAULT_CALL_TEMPLATE
    import_line: str = DEFAULT_IMPORT_LINE
    list_resource: str | None = None

    @property
    def identifiers(self) -> frozenset[str]:
        """The storage objects (``localStorage``, ...).

        Taken from the read/write/delete callees. List callees such as
        ``Object.keys`` enumerate a storage object passed as their argument.
        """
        return frozenset(
            callee.split(".")[0]
            for callee, operation in self.calls.items()
            if operation != Operation.LIST
        )


@dataclass(frozen=True)
class MigrationScope:
    """Everything a run needs to know, as one immutable value."""

    root: Path
    features: tuple[Feature, ...]
    excluded: tuple[str, ...] = ()
    retain: tuple[str, ...] = ()
    source_alias: str = "@/"
    target_alias: str = "@/"
    kind_buckets: Mapping[SymbolKind, str] = field(default_factory=lambda: DEFAULT_KIND_BUCKETS)
    persistence: PersistenceInterface = field(default_factory=PersistenceInterface)
    contract: tuple[ApiContractEntry, ...] = ()
    jobs: int = 4
    config_path: Path | None = None

    @property
    def feature_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.features)

    def feature(self, name: str) -> Feature:
        for feature in self.features:
            if feature.name == name:
                return feature
        raise KeyError(name)

    def is_excluded(self, path: str) -> bool:
        """Check if a relative path lies in an excluded collaborator folder."""
        return any(path == folder or path.startswith(folder + "/") for folder in self.excluded)

    def is_retained(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.retain)

    def resource_owner(self, resource: str) -> str | None:
        """Return the Feature owning a persistence resource, if any."""
        for feature in self.features:
            if resource in feature.resources:
                return feature.name
        return None

    def bucket_for(self, kind: SymbolKind) -> str:
        return self.kind_buckets[kind]

    def with_features(self, *names: str) -> MigrationScope:
        """Return a copy restricted to the named Features."""
        unknown = set(names) - set(self.feature_names)
        if unknown:
            raise ConfigError(f"Unknown features: {', '.join(sorted(unknown))}")
        return replace(self, features=tuple(f for f in self.features if f.name in names))


def load_scope(config_path: Path) -> MigrationScope:
    """Load a MigrationScope from a TOML file.

    Relative ``source_root`` values are resolved against the config file's
    directory.
    """
    try:
        data = toml.load(str(config_path))
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {config_path}") from e
    except toml.TomlDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
    config_path = config_path.resolve()
    return replace(scope_from_dict(data, config_path.parent), config_path=config_path)


def scope_from_dict(data: Mapping[str, Any], base_dir: Path) -> MigrationScope:
    """Validate a config mapping and build a MigrationScope."""
    root = (base_dir / data.get("source_root", ".")).resolve()
    excluded = tuple(_normalize(p) for p in data.get("excluded", []))

    features_data = data.get("features") or {}
    if not features_data:
        raise ConfigError("At least one feature must be configured")

    features = []
    resource_owners: dict[str, str] = {}
    for name, spec in features_data.items():
        if not _FEATURE_NAME.match(name):
            raise ConfigError(f"Invalid feature name: {name!r}")
        entry_points = tuple(_normalize(p) for p in spec.get("entry_points", []))
        if not entry_points:
            raise ConfigError(f"Feature {name!r} has no entry points")
        for entry in entry_points:
            if any(entry == f or entry.startswith(f + "/") for f in excluded):
                raise ConfigError(f"Entry point {entry} of {name!r} is in an excluded folder")
        resources = frozenset(spec.get("resources", []))
        for resource in resources:
            if resource in resource_owners:
                raise ConfigError(
                    f"Resource {resource!r} owned by both {resource_owners[resource]!r} "
                    f"and {name!r}"
                )
            resource_owners[resource] = name
        features.append(Feature(name=name, entry_points=entry_points, resources=resources))

    buckets = dict(DEFAULT_KIND_BUCKETS)
    for kind_name, folder in (data.get("kind_buckets") or {}).items():
        try:
            buckets[SymbolKind(kind_name)] = folder
        except ValueError as e:
            raise ConfigError(f"Unknown kind in kind_buckets: {kind_name!r}") from e

    jobs = int(data.get("jobs", 4))
    if jobs < 1:
        raise ConfigError("jobs must be at least 1")

    return MigrationScope(
        root=root,
        features=tuple(features),
        excluded=excluded,
        retain=tuple(data.get("retain", [])),
        source_alias=data.get("source_alias", "@/"),
        target_alias=data.get("target_alias", "@/"),
        kind_buckets=MappingProxyType(buckets),
        persistence=_persistence_from_dict(data.get("persistence") or {}),
        contract=tuple(_contract_entry(e) for e in data.get("contract", [])),
        jobs=jobs,
    )


def _persistence_from_dict(data: Mapping[str, Any]) -> PersistenceInterface:
    calls = DEFAULT_PERSISTENCE_CALLS
    if "calls" in data:
        calls = MappingProxyType(
            {callee: _operation(op) for callee, op in data["calls"].items()}
        )
    return PersistenceInterface(
        calls=calls,
        call_template=data.get("call_template", DEFAULT_CALL_TEMPLATE),
        import_line=data.get("import_line", DEFAULT_IMPORT_LINE),
        list_resource=data.get("list_resource"),
    )


def _contract_entry(data: Mapping[str, Any]) -> ApiContractEntry:
    try:
        return ApiContractEntry(
            name=data["name"],
            operation=_operation(data["operation"]),
            resource=data["resource"],
            method=data.get("method", "GET").upper(),
            path=data["path"],
            params=tuple(data.get("params", [])),
            returns=data.get("returns"),
            template=data.get("template"),
        )
    except KeyError as e:
        raise ConfigError(f"Contract entry missing field {e}: {dict(data)}") from e


def _operation(value: str) -> Operation:
    try:
        return Operation(value)
    except ValueError as e:
        raise ConfigError(f"Unknown persistence operation: {value!r}") from e


def _normalize(path: str) -> str:
    return Path(path).as_posix().strip("/")
