"""
Competency framework importer.

One FrameworkImporter is one import session:

    parse()            rows -> framework record + flat competency map -> tree
    import_framework() create the framework and its competencies depth-first,
                       then migrate rule configs and link related competencies
                       using the identities created in the first pass

Input problems are recorded with fail() and stop the session before any
persistence call. Persistence errors propagate to the caller, who owns the
transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from lpsync.competency.api import (
    CompetencyApi,
    CompetencyHandle,
    CompetencyPayload,
    FrameworkHandle,
    FrameworkPayload,
)
from lpsync.competency.rules import get_rule, migrate_rule_config, normalize_rule_type
from lpsync.competency.scales import ScaleResolver
from lpsync.competency.tree import TreeCycleError, build_tree, walk
from lpsync.core.logging import get_logger
from lpsync.core.settings import ImportConfig
from lpsync.imports.mapping import (
    MappingSelection,
    auto_map_columns,
    list_required_headers,
    read_mapping_data,
    selection_from_settings,
)
from lpsync.imports.reader import TabularImportReader
from lpsync.imports.records import (
    CompetencyRecord,
    FrameworkRecord,
    clean_identifier,
    collect_records,
)

logger = get_logger("lpsync.competency.importer")

IMPORT_KIND = "competency_framework"

# Mapping modes accepted by parse() besides an explicit MappingSelection.
MAPPING_SETTINGS = "settings"
MAPPING_AUTO = "auto"

MappingArg = Union[MappingSelection, str, None]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class CreationResult:
    """Identities assigned by the creation pass."""

    framework: FrameworkHandle
    created: Dict[str, CompetencyHandle] = field(default_factory=dict)        # idnumber -> handle
    export_mapping: Dict[str, CompetencyHandle] = field(default_factory=dict)  # exportid -> handle
    skipped: List[str] = field(default_factory=list)


@dataclass
class ImportResult:
    framework: FrameworkHandle
    created: Dict[str, CompetencyHandle]
    export_mapping: Dict[str, CompetencyHandle]
    competencies_created: int = 0
    competencies_skipped: int = 0
    competencies_omitted: int = 0
    scales_created: int = 0
    scales_reused: int = 0
    rules_applied: int = 0
    relations_added: int = 0

    def summary(self) -> Dict[str, object]:
        return {
            "framework_id": self.framework.id,
            "framework_idnumber": self.framework.idnumber,
            "framework": self.framework.shortname,
            "competencies_created": self.competencies_created,
            "competencies_skipped": self.competencies_skipped,
            "competencies_omitted": self.competencies_omitted,
            "scales_created": self.scales_created,
            "scales_reused": self.scales_reused,
            "rules_applied": self.rules_applied,
            "relations_added": self.relations_added,
        }


# ---------------------------------------------------------------------------
# Creation pass
# ---------------------------------------------------------------------------

def create_framework_tree(
    api: CompetencyApi,
    scales: ScaleResolver,
    config: ImportConfig,
    framework: FrameworkRecord,
) -> CreationResult:
    """
    Persist the framework, then every competency below it in pre-order.

    A competency without idnumber or shortname is not created, and neither is
    anything below it.
    """
    scale_id, scale_config = scales.resolve_with_configuration(
        framework.scalevalues, framework.scaleconfiguration, framework.shortname
    )
    handle = api.create_framework(
        FrameworkPayload(
            shortname=framework.shortname,
            idnumber=framework.idnumber,
            scaleid=scale_id,
            scaleconfiguration=scale_config,
            contextid=config.context_id,
            description=framework.description,
            descriptionformat=framework.descriptionformat,
            taxonomies=framework.taxonomies,
        )
    )
    logger.info("Created framework %d '%s'", handle.id, handle.idnumber)

    result = CreationResult(framework=handle)
    missing = set()

    for record, parent in walk(framework):
        if parent is not None and id(parent) in missing:
            missing.add(id(record))
            result.skipped.append(record.idnumber)
            logger.warning(
                "Competency '%s' skipped: parent '%s' was not created",
                record.idnumber, parent.idnumber,
            )
            continue

        if not record.idnumber or not record.shortname:
            missing.add(id(record))
            result.skipped.append(record.idnumber)
            logger.warning(
                "Competency row skipped: idnumber '%s' / shortname '%s' must both be set",
                record.idnumber, record.shortname,
            )
            continue

        payload = CompetencyPayload(
            competencyframeworkid=handle.id,
            shortname=record.shortname,
            idnumber=record.idnumber,
            parentid=result.created[parent.idnumber].id if parent is not None else 0,
        )
        if record.description:
            payload.description = record.description
            payload.descriptionformat = record.descriptionformat
        if record.scalevalues:
            payload.scaleid, payload.scaleconfiguration = scales.resolve_with_configuration(
                record.scalevalues, record.scaleconfiguration, record.shortname
            )

        comp = api.create_competency(payload)
        logger.debug("Created competency %d '%s'", comp.id, comp.idnumber)
        result.created[record.idnumber] = comp
        if record.exportid:
            result.export_mapping[record.exportid] = comp

    return result


# ---------------------------------------------------------------------------
# Rule and relation pass
# ---------------------------------------------------------------------------

def apply_rules(api: CompetencyApi, framework: FrameworkRecord, creation: CreationResult) -> int:
    """Migrate and store the rule of every created competency. Returns rules stored."""
    applied = 0
    for record, _ in walk(framework):
        comp = creation.created.get(record.idnumber)
        if comp is None or not record.ruletype:
            continue

        if get_rule(record.ruletype) is None:
            logger.debug("Unknown rule type '%s' on '%s' -- ignored", record.ruletype, record.idnumber)
            continue

        new_config = migrate_rule_config(
            record.ruletype, record.ruleconfig, creation.export_mapping
        )

        comp.ruletype = normalize_rule_type(record.ruletype)
        comp.ruleoutcome = record.ruleoutcome
        comp.ruleconfig = new_config
        api.update_rule(comp.id, comp.ruletype, comp.ruleoutcome, comp.ruleconfig)
        applied += 1
    return applied


def split_related_idnumbers(raw: str) -> List[str]:
    """Split on ',' then restore commas that were escaped as %2C inside one idnumber."""
    if not raw:
        return []
    return [token.replace("%2C", ",") for token in raw.split(",")]


def link_related(
    api: CompetencyApi,
    framework: FrameworkRecord,
    flat: Dict[str, CompetencyRecord],
    creation: CreationResult,
) -> int:
    """Create the declared related-competency links. Returns links added."""
    added = 0
    for record, _ in walk(framework):
        comp = creation.created.get(record.idnumber)
        if comp is None or not record.relatedidnumbers:
            continue

        for token in split_related_idnumbers(record.relatedidnumbers):
            idnumber = clean_identifier(token)
            target = flat.get(idnumber)
            related = creation.created.get(idnumber) if target is not None else None
            if related is None:
                logger.debug("Related idnumber '%s' on '%s' not imported", idnumber, record.idnumber)
                continue
            if related.id == comp.id:
                logger.debug("Competency '%s' lists itself as related", record.idnumber)
                continue
            if api.add_related(comp.id, related.id):
                added += 1
    return added


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class FrameworkImporter:
    """One framework import: parse an upload, then import it."""

    def __init__(self, api: CompetencyApi, config: Optional[ImportConfig] = None):
        self.api = api
        self.config = config or ImportConfig()
        self.error = ""
        self.import_id: Optional[str] = None
        self.reader: Optional[TabularImportReader] = None
        self.found_headers: List[str] = []
        self.framework: Optional[FrameworkRecord] = None
        self.flat: Dict[str, CompetencyRecord] = {}
        self.omitted: List[CompetencyRecord] = []

    def __enter__(self) -> "FrameworkImporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # -- session state -----------------------------------------------------

    def fail(self, msg: str) -> bool:
        self.error = msg
        logger.warning("Import failed: %s", msg)
        return False

    def get_error(self) -> str:
        return self.error

    def get_import_id(self) -> Optional[str]:
        return self.import_id

    def list_found_headers(self) -> List[str]:
        return list(self.found_headers)

    @staticmethod
    def list_required_headers() -> List[str]:
        return list_required_headers()

    def cleanup(self) -> None:
        """Release the stored upload. Safe to call more than once."""
        if self.reader is not None:
            self.reader.cleanup()

    def _resolve_mapping(self, mapping: MappingArg) -> Dict[str, int]:
        if mapping == MAPPING_SETTINGS:
            mapping = selection_from_settings(self.config.column_names)
        elif mapping == MAPPING_AUTO:
            mapping = auto_map_columns(self.found_headers)
        elif isinstance(mapping, str):
            raise ValueError(f"Unknown mapping mode: {mapping}")
        return read_mapping_data(mapping, self.found_headers)

    # -- parse -------------------------------------------------------------

    def parse(
        self,
        content: Union[str, bytes, None] = None,
        encoding: Optional[str] = None,
        delimiter: Optional[str] = None,
        import_id: Optional[str] = None,
        mapping: MappingArg = None,
        file_format: str = "csv",
    ) -> bool:
        """
        Read the upload (or a stored import) into records and build the tree.

        Args:
            content: CSV text/bytes or XLSX bytes; ignored when import_id is given
            encoding: Encoding of byte content (defaults to config)
            delimiter: Delimiter name or character (defaults to config)
            import_id: Reopen an import stored by an earlier parse()
            mapping: MappingSelection, "settings", "auto" or None for positional
            file_format: "csv" or "xlsx"

        Returns:
            True when the framework is ready to import; otherwise get_error() says why
        """
        self.error = ""
        self.framework, self.flat, self.omitted = None, {}, []

        # a new upload, or another stored import, replaces what this session holds
        if self.reader is not None and self.reader.import_id != import_id:
            self.cleanup()
            self.reader = None

        if import_id is None:
            if content is None:
                return False
            self.import_id = TabularImportReader.new_import_id(IMPORT_KIND)
            self.reader = TabularImportReader(self.import_id, IMPORT_KIND)
            if file_format == "xlsx":
                loaded = self.reader.load_xlsx(content)
            else:
                loaded = self.reader.load(
                    content,
                    encoding or self.config.encoding,
                    delimiter or self.config.delimiter,
                )
            if not loaded:
                self.cleanup()
                return self.fail(self.config.invalid_file_message)
        else:
            self.import_id = import_id
            self.reader = TabularImportReader(self.import_id, IMPORT_KIND)

        if not self.reader.init():
            self.cleanup()
            return self.fail(self.config.invalid_file_message)

        self.found_headers = self.reader.columns()
        try:
            table = self._resolve_mapping(mapping)
        except ValueError:
            self.reader.close()
            self.cleanup()
            raise

        framework, flat = collect_records(iter(self.reader.next_row, None), table)
        self.reader.close()
        self.flat = flat

        if framework is None:
            self.cleanup()
            return self.fail(self.config.invalid_file_message)
        if not framework.scalevalues:
            self.cleanup()
            return self.fail(f"Framework '{framework.idnumber}' has no scale values")

        try:
            self.omitted = build_tree(framework, flat)
        except TreeCycleError as exc:
            self.cleanup()
            return self.fail(str(exc))

        self.framework = framework
        logger.info(
            "Parsed framework '%s': %d competencies (%d omitted)",
            framework.idnumber, len(flat), len(self.omitted),
        )
        return True

    # -- import ------------------------------------------------------------

    def import_framework(self) -> ImportResult:
        """
        Create everything parsed, then resolve rules and relations.

        The stored upload is released whether or not the import succeeds.

        Raises:
            RuntimeError: parse() has not succeeded
        """
        if self.error or self.framework is None:
            raise RuntimeError(f"Nothing to import: {self.error or 'parse() has not run'}")

        try:
            scales = ScaleResolver(self.api, self.config)
            creation = create_framework_tree(self.api, scales, self.config, self.framework)
            rules_applied = apply_rules(self.api, self.framework, creation)
            relations_added = link_related(self.api, self.framework, self.flat, creation)
        finally:
            self.cleanup()

        result = ImportResult(
            framework=creation.framework,
            created=creation.created,
            export_mapping=creation.export_mapping,
            competencies_created=len(creation.created),
            competencies_skipped=len(creation.skipped),
            competencies_omitted=len(self.omitted),
            scales_created=scales.created,
            scales_reused=scales.reused,
            rules_applied=rules_applied,
            relations_added=relations_added,
        )
        logger.info(
            "Imported framework '%s': %d competencies, %d rules, %d relations",
            creation.framework.idnumber, result.competencies_created,
            rules_applied, relations_added,
        )
        return result
