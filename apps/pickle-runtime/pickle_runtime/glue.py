"""Step definitions and the glue modules that register them."""

from __future__ import annotations

import importlib
import re
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Sequence

from .errors import ConfigurationError
from .models import Step

StepFunction = Callable[..., Any]

REGISTER_HOOK = "register_steps"


class PendingStep(Exception):
    """Raised by step code that is not implemented yet."""


class SkipStep(Exception):
    """Raised by step code to skip the rest of the scenario."""


class UndefinedStep(LookupError):
    def __init__(self, step: Step) -> None:
        self.step = step
        super().__init__(f"Undefined step: {step.text}")


class AmbiguousStep(LookupError):
    def __init__(self, step: Step, definitions: list["StepDefinition"]) -> None:
        self.step = step
        self.definitions = definitions
        patterns = ", ".join(definition.pattern.pattern for definition in definitions)
        super().__init__(f"Step '{step.text}' matches several definitions: {patterns}")


@dataclass(frozen=True)
class StepDefinition:
    pattern: re.Pattern[str]
    function: StepFunction

    @property
    def location(self) -> str:
        """Where the step function lives, as ``module:qualname``."""
        module = getattr(self.function, "__module__", None) or "<unknown>"
        name = getattr(self.function, "__qualname__", None) or repr(self.function)
        return f"{module}:{name}"


@dataclass(frozen=True)
class StepMatch:
    definition: StepDefinition
    arguments: tuple[Any, ...]

    def invoke(self, world: Any) -> Any:
        return self.definition.function(world, *self.arguments)


class StepRegistry:
    """Resolves step text to exactly one registered step function."""

    def __init__(self) -> None:
        self._definitions: list[StepDefinition] = []

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def definitions(self) -> tuple[StepDefinition, ...]:
        return tuple(self._definitions)

    def add(self, pattern: str, function: StepFunction) -> StepDefinition:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise ConfigurationError(f"Invalid step pattern '{pattern}': {exc}") from exc
        definition = StepDefinition(pattern=compiled, function=function)
        self._definitions.append(definition)
        return definition

    def step(self, pattern: str) -> Callable[[StepFunction], StepFunction]:
        """Decorator form of :meth:`add`."""

        def decorator(function: StepFunction) -> StepFunction:
            self.add(pattern, function)
            return function

        return decorator

    def resolve(self, step: Step) -> StepMatch:
        matches: list[StepMatch] = []
        for definition in self._definitions:
            found = definition.pattern.fullmatch(step.text)
            if found is None:
                continue
            arguments: tuple[Any, ...] = found.groups()
            if step.doc_string is not None:
                arguments += (step.doc_string,)
            if step.data_table is not None:
                arguments += ([list(row) for row in step.data_table],)
            matches.append(StepMatch(definition=definition, arguments=arguments))
        if not matches:
            raise UndefinedStep(step)
        if len(matches) > 1:
            raise AmbiguousStep(step, [match.definition for match in matches])
        return matches[0]


class GlueLoader:
    """Imports glue modules once and lets each of them register steps."""

    def __init__(self, modules: Sequence[str], search_paths: Sequence[str] = ()) -> None:
        self.module_names = list(modules)
        self.search_paths = [str(Path(path).resolve()) for path in search_paths]
        self._modules: dict[str, ModuleType] = {}
        self._lock = threading.Lock()
        self._path_added = False

    def validate(self) -> None:
        """Import every glue module up front so mistakes surface before the run."""

        for module_name in self.module_names:
            self._hook(module_name)

    def load(self, registry: StepRegistry) -> StepRegistry:
        for module_name in self.module_names:
            self._hook(module_name)(registry)
        return registry

    def _hook(self, module_name: str) -> Callable[[StepRegistry], None]:
        hook = getattr(self._import(module_name), REGISTER_HOOK, None)
        if hook is None:
            raise ConfigurationError(
                f"Glue module {module_name} does not define {REGISTER_HOOK}(registry)"
            )
        return hook

    def _import(self, module_name: str) -> ModuleType:
        with self._lock:
            module = self._modules.get(module_name)
            if module is not None:
                return module
            self._ensure_path()
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                raise ConfigurationError(f"Cannot import glue module {module_name}: {exc}") from exc
            self._modules[module_name] = module
            return module

    def _ensure_path(self) -> None:
        if self._path_added:
            return
        for path in reversed(self.search_paths):
            if path not in sys.path:
                sys.path.insert(0, path)
        self._path_added = True


_NUMBER = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)?(?![\w.])")
_QUOTED = re.compile(r'"[^"]*"')


def snippet_for(step: Step) -> str:
    """Render a pending step definition matching ``step``."""

    pieces: list[str] = []
    parameters: list[str] = []
    cursor = 0
    tokens = sorted(
        [(m.start(), m.end(), r'"([^"]*)"') for m in _QUOTED.finditer(step.text)]
        + [(m.start(), m.end(), r"(-?\d+(?:\.\d+)?)") for m in _NUMBER.finditer(step.text)]
    )
    for start, end, group in tokens:
        if start < cursor:
            continue
        pieces.append(re.escape(step.text[cursor:start]))
        pieces.append(group)
        parameters.append(f"arg{len(parameters) + 1}")
        cursor = end
    pieces.append(re.escape(step.text[cursor:]))
    if step.doc_string is not None:
        parameters.append("doc_string")
    if step.data_table is not None:
        parameters.append("data_table")

    bare = _NUMBER.sub("", _QUOTED.sub("", step.text))
    name = re.sub(r"\W+", "_", bare.lower()).strip("_") or "step"
    if name[0].isdigit():
        name = f"step_{name}"
    signature = ", ".join(["world", *parameters])
    # Quotes are escaped so the pattern stays a valid raw string literal.
    pattern = "".join(pieces).replace('"', '\\"')
    return (
        f'@registry.step(r"{pattern}")\n'
        f"def {name}({signature}):\n"
        f"    raise PendingStep()\n"
    )
