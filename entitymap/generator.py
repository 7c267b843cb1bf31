# File: entitymap/generator.py
"""
EntityMap - Generation Pipeline (Orchestrator)
===============================================

Connects the phases for one entity::

    RawFieldDecl[] → resolve → EntitySchema → {DDL, CRUD, decode plan} → GeneratedUnit

and runs that per entity over a whole declaration document.

Error handling strategy:
    - A configuration error stops the entity it belongs to and nothing
      else; it is recorded in the ``GenerationReport``.
    - Cross-entity checks (``validators.validate_full``) run over the
      entities that resolved.
    - Entities share no mutable state, so a batch may be spread over a
      thread pool; results keep declaration order either way.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import yaml
from pydantic import ValidationError

from entitymap.crud import query_method_name, synthesize_crud, synthesize_raw_query
from entitymap.ddl import synthesize_create_table
from entitymap.decoding import plan_decode
from entitymap.errors import EntityMapError, InvalidElement
from entitymap.models import (
    EntityDeclaration,
    EntitySchema,
    GeneratedUnit,
    GenerationConfig,
    QuerySpec,
    StatementTemplate,
)
from entitymap.resolver import resolve_declaration
from entitymap.utils import Timer
from entitymap.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.generator")

DeclarationInput = Union[EntityDeclaration, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Single-entity generation
# ---------------------------------------------------------------------------


def generate_unit(
    schema: EntitySchema,
    queries: Sequence[QuerySpec] = (),
    *,
    config: Optional[GenerationConfig] = None,
) -> GeneratedUnit:
    """
    Synthesize every artifact for one resolved entity.

    Raises:
        ConfigurationError: Invalid query declarations, or untyped decode fallbacks
            when ``config.fail_on_opaque_decode`` is set.
    """
    cfg: GenerationConfig = config or GenerationConfig()

    rendered_queries: Dict[str, StatementTemplate] = {}
    method_names: Dict[str, str] = {}
    for query in queries:
        if query.name in rendered_queries:
            raise InvalidElement(
                f"Query '{query.name}' is declared more than once.",
                entity=schema.entity_name,
                context={"query": query.name},
            )
        method: str = query_method_name(query.name)
        if method in method_names:
            raise InvalidElement(
                f"Queries '{method_names[method]}' and '{query.name}' "
                f"share the accessor name '{method}'.",
                entity=schema.entity_name,
                context={"query": query.name},
            )
        method_names[method] = query.name
        rendered_queries[query.name] = synthesize_raw_query(query, entity=schema.entity_name)

    unit: GeneratedUnit = GeneratedUnit(
        entity_name=schema.entity_name,
        table_name=schema.table_name,
        primary_key=schema.primary_key.name,
        ddl=synthesize_create_table(schema),
        statements=synthesize_crud(schema),
        queries=rendered_queries,
        decode_plan=tuple(
            plan_decode(
                schema.fields,
                entity=schema.entity_name,
                fail_on_opaque=cfg.fail_on_opaque_decode,
            )
        ),
    )
    logger.debug("Generated %r.", unit)
    return unit


def build_entity(
    declaration: EntityDeclaration,
    config: Optional[GenerationConfig] = None,
) -> Tuple[EntitySchema, GeneratedUnit]:
    """Resolve a declaration and generate its unit."""
    schema: EntitySchema = resolve_declaration(declaration, config)
    return schema, generate_unit(schema, declaration.queries, config=config)


# ---------------------------------------------------------------------------
# Declaration file loading
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_declaration_file(path: Path) -> Dict[str, Any]:
    """
    Load an entity declaration file (JSON or YAML), dispatching on extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Declaration file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Declaration path is not a file: {path}")

    if path.suffix.lower() == ".json":
        return _load_json_file(path)
    # YAML is a superset of JSON
    return _load_yaml_file(path)


def parse_config(raw: Mapping[str, Any]) -> GenerationConfig:
    """Parse the optional ``config`` section of a declaration document."""
    config_data: Any = raw.get("config") or {}
    try:
        return GenerationConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


def entity_section(raw: Mapping[str, Any]) -> List[Any]:
    entities: Any = raw.get("entities")
    if not isinstance(entities, list) or not entities:
        raise ValueError(
            "Cannot find entity declarations in input. "
            "Expected a non-empty top-level 'entities' list."
        )
    return entities


def parse_declarations(raw: Mapping[str, Any]) -> Tuple[List[Any], GenerationConfig]:
    """Split a loaded document into its raw entity list and its config."""
    return entity_section(raw), parse_config(raw)


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=True, slots=True)
class EntityFailure:
    """Why one entity produced no unit."""

    entity: str
    code: str
    message: str


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Outcome of a batch run: units per entity, failures and metrics."""

    success: bool = False
    units: Dict[str, GeneratedUnit] = field(default_factory=dict)
    schemas: Dict[str, EntitySchema] = field(default_factory=dict)
    failures: List[EntityFailure] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    total_elapsed_seconds: float = 0.0
    config: Optional[GenerationConfig] = None

    @property
    def failed_entities(self) -> List[str]:
        return [f.entity for f in self.failures]

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "SUCCESS" if self.success else "FAILED"
        lines.append("=" * 60)
        lines.append("  EntityMap - Generation Report")
        lines.append("=" * 60)
        lines.append(f"  Status:             {status}")
        lines.append(f"  Entities generated: {len(self.units)}")
        lines.append(f"  Entities failed:    {len(self.failures)}")
        lines.append(f"  Total time:         {self.total_elapsed_seconds:.3f}s")

        if self.step_metrics:
            lines.append("-" * 60)
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<24s} "
                    f"{step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        if self.failures:
            lines.append("-" * 60)
            lines.append(f"  Failures ({len(self.failures)}):")
            for failure in self.failures:
                lines.append(f"    ✗ {failure.entity} [{failure.code}] {failure.message}")

        if self.validation is not None and len(self.validation):
            lines.append("-" * 60)
            lines.append(self.validation.format_report())

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# EntityGenerator: batch orchestrator
# ---------------------------------------------------------------------------

_Outcome = Tuple[str, Optional[Tuple[EntitySchema, GeneratedUnit]], Optional[EntityFailure]]


class EntityGenerator:
    """
    Batch orchestrator.

    Usage::

        generator = EntityGenerator(GenerationConfig())
        report = generator.generate_all(declarations)
        for name, unit in report.units.items():
            ...

    The generator keeps no state between runs.
    """

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        logger.debug(
            "EntityGenerator initialised: workers=%d, continue_on_error=%s.",
            self._config.parallel_workers,
            self._config.continue_on_error,
        )

    @property
    def config(self) -> GenerationConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate_from_file(self, path: Path) -> GenerationReport:
        """
        Load a declaration file and generate every entity in it.

        The file's ``config`` section applies to this run only; without one
        the generator's own config is used.

        Raises:
            FileNotFoundError / ValueError: The file itself is unusable.
        """
        raw: Dict[str, Any] = load_declaration_file(path)
        logger.info("Loaded declaration file: %s.", path)
        entities, file_config = parse_declarations(raw)
        return self.generate_all(entities, file_config if raw.get("config") else None)

    def generate_all(
        self,
        declarations: Sequence[DeclarationInput],
        config: Optional[GenerationConfig] = None,
    ) -> GenerationReport:
        """Generate every declaration; *config* overrides the generator's for this call."""
        cfg: GenerationConfig = config or self._config
        report: GenerationReport = GenerationReport(config=cfg)
        started: float = time.perf_counter()

        with Timer("resolve_and_synthesize") as t_gen:
            outcomes: List[_Outcome] = self._process_all(declarations, cfg)

        for name, built, failure in outcomes:
            if failure is not None:
                report.failures.append(failure)
                continue
            assert built is not None
            if name in report.units:
                report.failures.append(
                    EntityFailure(
                        entity=name,
                        code=InvalidElement.code,
                        message=f"Entity '{name}' is declared more than once.",
                    )
                )
                continue
            report.schemas[name], report.units[name] = built

        report.step_metrics.append(GenerationStepMetric(
            step_name="Resolve & Synthesize",
            success=not report.failures,
            elapsed_seconds=t_gen.elapsed,
            detail=f"{len(report.units)} ok, {len(report.failures)} failed",
        ))

        with Timer("validation") as t_val:
            report.validation = validate_full(list(report.schemas.values()))
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate",
            success=report.validation.is_valid,
            elapsed_seconds=t_val.elapsed,
            detail=report.validation.summary(),
        ))

        report.success = not report.failures and report.validation.is_valid
        report.total_elapsed_seconds = time.perf_counter() - started

        if report.success:
            logger.info("Generated %d entit(ies) in %.3fs.", len(report.units), report.total_elapsed_seconds)
        else:
            logger.error(
                "Generation finished with %d failed entit(ies) and %d validation error(s).",
                len(report.failures),
                len(report.validation.errors),
            )
        return report

    # -----------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------

    def _process_all(
        self, declarations: Sequence[DeclarationInput], config: GenerationConfig
    ) -> List[_Outcome]:
        indexed: List[Tuple[int, DeclarationInput]] = list(enumerate(declarations))
        workers: int = config.parallel_workers

        if workers > 1 and len(indexed) > 1:
            if not config.continue_on_error:
                logger.warning(
                    "continue_on_error=False is ignored with parallel_workers=%d: "
                    "every entity is attempted.",
                    workers,
                )
            with ThreadPoolExecutor(max_workers=workers) as executor:
                # map() keeps input order
                return list(executor.map(lambda item: self._process_one(*item, config), indexed))

        outcomes: List[_Outcome] = []
        for index, declaration in indexed:
            outcome: _Outcome = self._process_one(index, declaration, config)
            outcomes.append(outcome)
            if outcome[2] is not None and not config.continue_on_error:
                logger.error("Stopping after first failure (continue_on_error=False).")
                break
        return outcomes

    def _process_one(
        self, index: int, declaration: DeclarationInput, config: GenerationConfig
    ) -> _Outcome:
        name: str = _declared_name(index, declaration)
        try:
            decl: EntityDeclaration = _coerce_declaration(index, declaration)
            schema, unit = build_entity(decl, config)
        except EntityMapError as exc:
            logger.error("Entity %s skipped: %s", name, exc)
            code: str = getattr(exc, "code", "ENTITYMAP_ERROR")
            return name, None, EntityFailure(entity=name, code=code, message=str(exc))
        return decl.name, (schema, unit), None


def _declared_name(index: int, declaration: DeclarationInput) -> str:
    if isinstance(declaration, EntityDeclaration):
        return declaration.name
    if isinstance(declaration, Mapping) and isinstance(declaration.get("name"), str):
        return declaration["name"]
    return f"#{index}"


def _coerce_declaration(index: int, declaration: DeclarationInput) -> EntityDeclaration:
    if isinstance(declaration, EntityDeclaration):
        return declaration
    if not isinstance(declaration, Mapping):
        raise InvalidElement(
            f"Entity #{index} must be a mapping, got {type(declaration).__name__}.",
            context={"index": index},
        )
    try:
        return EntityDeclaration.model_validate(dict(declaration))
    except ValidationError as exc:
        raise InvalidElement(
            f"Entity #{index} is not a valid declaration: {exc}",
            entity=_declared_name(index, declaration),
            context={"index": index},
        ) from exc


__all__: List[str] = [
    "EntityFailure",
    "EntityGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "build_entity",
    "entity_section",
    "generate_unit",
    "load_declaration_file",
    "parse_config",
    "parse_declarations",
]

logger.debug("entitymap.generator loaded.")
