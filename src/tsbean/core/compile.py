import logging
from dataclasses import dataclass, field
from pathlib import Path

from tsbean.config import CompilerSettings
from tsbean.core.cache import CacheIndex
from tsbean.core.diagnostics import Diagnostics
from tsbean.core.emitter import SchemaEmitter, write_atomic
from tsbean.core.extract import DeclarationExtractor, DeclarationSet
from tsbean.core.inheritance import InheritanceResolver
from tsbean.core.type_mapper import TypeMapper
from tsbean.models import Declaration, DeclarationKind, SchemaEntry, VirtualField

logger = logging.getLogger(__name__)

_CONTAINER_PREFIXES = ("list,", "set,", "map,", "(")


@dataclass
class CompileResult:
    output: Path
    entries: list[SchemaEntry] = field(default_factory=list)

    @property
    def reused(self) -> int:
        return sum(1 for entry in self.entries if entry.cached)

    @property
    def regenerated(self) -> int:
        return len(self.entries) - self.reused


def extract_declarations(settings: CompilerSettings, extractor: DeclarationExtractor | None = None) -> DeclarationSet:
    """Directory scan when ``settings.input`` is set, otherwise the registration file."""
    extractor = extractor or DeclarationExtractor(settings)
    if settings.input is not None:
        return extractor.extract_directory(settings.input)
    return extractor.extract_registrations(settings.registrations)


def run_compile(
    settings: CompilerSettings,
    force: bool = False,
    extractor: DeclarationExtractor | None = None,
) -> CompileResult:
    """One batch run: cache, extraction, mapping, diagnostics gate, single write.

    Raises ``MissingInputError`` before any mapping when the input is absent and
    ``UnmappableTypeError`` after every declaration has been visited when any
    type could not be mapped; the output file is untouched in both cases.
    """
    cache = CacheIndex() if force else CacheIndex.load(settings.output)
    declarations = extract_declarations(settings, extractor)
    diagnostics = Diagnostics()
    resolver = InheritanceResolver(declarations, settings, diagnostics)
    mapper = TypeMapper(declarations, settings, diagnostics, resolver.polymorphic_names())
    emitter = SchemaEmitter(settings.module, settings.banner)

    result = CompileResult(output=settings.output)
    for declaration in declarations.declarations:
        cached = cache.lookup(declaration.name, declaration.content_hash)
        if cached is not None:
            logger.debug("Reusing cached entry for %s", declaration.name)
            result.entries.append(emitter.cached_entry(declaration, cached))
            continue
        logger.debug("Generating entry for %s", declaration.name)
        result.entries.append(_generate(declaration, resolver, mapper, emitter))

    diagnostics.raise_if_any()
    write_atomic(settings.output, emitter.render(result.entries))
    logger.info(
        "Wrote %d entr(y/ies) to %s (%d reused, %d regenerated)",
        len(result.entries),
        settings.output,
        result.reused,
        result.regenerated,
    )
    return result


def _generate(
    declaration: Declaration,
    resolver: InheritanceResolver,
    mapper: TypeMapper,
    emitter: SchemaEmitter,
) -> SchemaEntry:
    if declaration.kind == DeclarationKind.ENUMERATION:
        return emitter.enum_entry(declaration)
    lineage = resolver.resolve(declaration)
    declaration.polymorphic = lineage.polymorphic
    fields = []
    for decl in declaration.fields:
        if decl.name in lineage.inherited_fields:
            logger.debug("%s.%s is declared by an ancestor; not repeated", declaration.name, decl.name)
            continue
        fields.append((decl.name, mapper.map_field(declaration.name, decl), decl.comment))
    taken = {name for name, _, _ in fields} | lineage.inherited_fields
    for virtual in declaration.virtual_fields:
        if virtual.name in taken:
            logger.warning("%s already declares %s; virtual field ignored", declaration.name, virtual.name)
            continue
        taken.add(virtual.name)
        fields.append((virtual.name, _virtual_type(virtual), virtual.comment))
    return emitter.bean_entry(declaration, lineage.parent, fields)


def _virtual_type(virtual: VirtualField) -> str:
    if not virtual.optional or virtual.type.startswith(_CONTAINER_PREFIXES) or virtual.type.endswith("?"):
        return virtual.type
    return f"{virtual.type}?"
