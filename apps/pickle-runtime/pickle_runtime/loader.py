"""Loading of pre-parsed pickle documents."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml

from .models import Feature, Scenario

FEATURE_SUFFIXES = {".yaml", ".yml"}


def load_feature(path: Path) -> Feature:
    """Load and validate one pickle YAML document."""

    source = path.read_text(encoding="utf-8")
    data = yaml.safe_load(source)
    if not isinstance(data, dict):
        raise ValueError(f"Feature file {path} must contain a mapping")
    uri = path.as_posix()
    scenarios = data.get("scenarios") or []
    if not isinstance(scenarios, list):
        raise ValueError(f"Feature file {path} must list its scenarios")
    return Feature(
        uri=uri,
        name=str(data.get("feature") or path.stem),
        source=source,
        scenarios=[_scenario(item, uri, path) for item in scenarios],
    )


def _scenario(item: object, uri: str, path: Path) -> Scenario:
    if not isinstance(item, dict):
        raise ValueError(f"Scenario entries in {path} must be mappings")
    return Scenario.model_validate({**item, "uri": uri})


def load_features(paths: Iterable[Path]) -> list[Feature]:
    """Load every feature file below ``paths``; directories are walked in sorted order.

    A file reachable through several paths (a directory and a file inside it)
    is loaded once, at its first position.
    """

    features: list[Feature] = []
    loaded: set[str] = set()
    for path in paths:
        if path.is_dir():
            files = sorted(p for p in path.rglob("*") if p.suffix.lower() in FEATURE_SUFFIXES)
        elif path.exists():
            files = [path]
        else:
            raise FileNotFoundError(f"Feature path not found: {path}")
        for file in files:
            if file.as_posix() in loaded:
                continue
            loaded.add(file.as_posix())
            features.append(load_feature(file))
    return features
