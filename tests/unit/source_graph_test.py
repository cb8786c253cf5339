"""Tests for locating declarations across files."""

from collections.abc import Callable
from pathlib import Path

from tsbean.core.registrations import ImportBinding
from tsbean.core.source_graph import SourceGraph
from tsbean.resolvers import LocalFileResolver

Write = Callable[[str, str], Path]


def _graph() -> SourceGraph:
    return SourceGraph(LocalFileResolver())


def test_finds_local_declaration(write_ts: Write) -> None:
    path = write_ts("a.ts", "export class A {}\nclass B {}\n")
    graph = _graph()

    found = graph.find("A", path)
    hidden = graph.find("B", path)

    assert found is not None and found.exported
    assert hidden is not None and not hidden.exported


def test_follows_named_and_star_reexports(write_ts: Write) -> None:
    write_ts("items/sword.ts", "export class Sword {}\n")
    write_ts("items/shield.ts", "export class Shield {}\n")
    barrel = write_ts(
        "items/index.ts",
        'export { Sword as Blade } from "./sword";\nexport * from "./shield";\n',
    )
    graph = _graph()

    blade = graph.find("Blade", barrel)
    shield = graph.find("Shield", barrel)

    assert blade is not None and blade.name == "Sword"
    assert shield is not None and shield.source.path.name == "shield.ts"


def test_reexport_of_imported_name(write_ts: Write) -> None:
    write_ts("impl.ts", "export interface Hit {}\n")
    facade = write_ts("facade.ts", 'import { Hit } from "./impl";\nexport { Hit };\n')

    found = _graph().find("Hit", facade)

    assert found is not None and found.source.path.name == "impl.ts"


def test_index_falls_back_to_sibling_files(write_ts: Write) -> None:
    write_ts("events/damage.ts", "export class DamageEvent {}\n")
    index = write_ts("events/index.ts", "export const version = 1;\n")

    found = _graph().find("DamageEvent", index)

    assert found is not None and found.source.path.name == "damage.ts"


def test_default_import(write_ts: Write) -> None:
    write_ts("boss.ts", "export default class Boss {}\n")
    importer = write_ts("reg.ts", 'import Boss from "./boss";\n')

    found = _graph().follow_import(ImportBinding(local="Boss", imported="default", specifier="./boss"), importer)

    assert found is not None and found.name == "Boss"


def test_reexport_cycle_terminates(write_ts: Write) -> None:
    a = write_ts("a.ts", 'export * from "./b";\n')
    write_ts("b.ts", 'export * from "./a";\n')

    assert _graph().find("Missing", a) is None


def test_load_reachable_parses_imported_files(write_ts: Write) -> None:
    root = write_ts("root.ts", 'import { Mid } from "./mid";\nexport class Root { mid: Mid; }\n')
    write_ts("mid.ts", 'import { Leaf } from "./leaf";\nexport class Mid { leaf: Leaf; }\n')
    write_ts("leaf.ts", "export class Leaf {}\n")
    graph = _graph()

    graph.load_reachable([root])

    assert sorted(source.path.name for source in graph.files()) == ["leaf.ts", "mid.ts", "root.ts"]


def test_namespace_declarations(write_ts: Write) -> None:
    path = write_ts("globals.d.ts", "declare namespace Game {\n  interface Config { id: number }\n}\n")

    found = _graph().find("Config", path)

    assert found is not None and found.exported
