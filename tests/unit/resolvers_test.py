"""Tests for the module resolution strategies."""

from pathlib import Path

from tsbean.resolvers import (
    AliasedPathResolver,
    ChainedResolver,
    LocalFileResolver,
    PackageResolver,
    build_resolver,
    load_tsconfig,
)
from tsbean.resolvers.tsconfig import strip_json_comments


def _touch(path: Path, text: str = "export {};\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLocalFileResolver:
    def test_extensionless_relative_import(self, tmp_path: Path) -> None:
        target = _touch(tmp_path / "src" / "monster.ts")
        importer = tmp_path / "src" / "reg.ts"
        assert LocalFileResolver().resolve("./monster", importer) == target

    def test_directory_index(self, tmp_path: Path) -> None:
        target = _touch(tmp_path / "src" / "items" / "index.ts")
        assert LocalFileResolver().resolve("./items", tmp_path / "src" / "reg.ts") == target

    def test_js_suffix_points_at_ts_source(self, tmp_path: Path) -> None:
        target = _touch(tmp_path / "monster.ts")
        assert LocalFileResolver().resolve("./monster.js", tmp_path / "reg.ts") == target

    def test_bare_specifier_is_not_handled(self, tmp_path: Path) -> None:
        assert LocalFileResolver().resolve("lodash", tmp_path / "reg.ts") is None


class TestTsConfig:
    def test_comments_and_trailing_commas(self) -> None:
        text = '{\n  // note\n  "a": "http://x", /* block */\n  "b": [1, 2,],\n}'
        assert strip_json_comments(text) == '{\n  \n  "a": "http://x", \n  "b": [1, 2]\n}'

    def test_aliased_paths(self, tmp_path: Path) -> None:
        _touch(
            tmp_path / "tsconfig.json",
            '{ "compilerOptions": { "baseUrl": "src", "paths": { "@shared/*": ["shared/*"] } } }',
        )
        target = _touch(tmp_path / "src" / "shared" / "events.ts")
        resolver = AliasedPathResolver(load_tsconfig(tmp_path / "tsconfig.json"))

        assert resolver.resolve("@shared/events", tmp_path / "src" / "reg.ts") == target.resolve()

    def test_base_url_lookup(self, tmp_path: Path) -> None:
        _touch(tmp_path / "tsconfig.json", '{ "compilerOptions": { "baseUrl": "." } }')
        target = _touch(tmp_path / "types" / "items.ts")
        resolver = AliasedPathResolver(load_tsconfig(tmp_path / "tsconfig.json"))

        assert resolver.resolve("types/items", tmp_path / "reg.ts") == target.resolve()

    def test_extends_inherits_paths(self, tmp_path: Path) -> None:
        _touch(
            tmp_path / "tsconfig.base.json",
            '{ "compilerOptions": { "baseUrl": ".", "paths": { "~/*": ["src/*"] } } }',
        )
        _touch(tmp_path / "tsconfig.json", '{ "extends": "./tsconfig.base.json" }')
        target = _touch(tmp_path / "src" / "a.ts")
        resolver = AliasedPathResolver(load_tsconfig(tmp_path / "tsconfig.json"))

        assert resolver.resolve("~/a", tmp_path / "reg.ts") == target.resolve()


class TestPackageResolver:
    def test_types_entry(self, tmp_path: Path) -> None:
        package = tmp_path / "node_modules" / "game-types"
        _touch(package / "package.json", '{ "types": "dist/index.d.ts" }')
        target = _touch(package / "dist" / "index.d.ts", "export declare class Spawn {}\n")

        resolved = PackageResolver().resolve("game-types", tmp_path / "src" / "reg.ts")
        assert resolved is not None
        assert resolved.resolve() == target.resolve()

    def test_symbol_search_in_other_declaration_files(self, tmp_path: Path) -> None:
        package = tmp_path / "node_modules" / "game-types"
        _touch(package / "index.d.ts", 'export * from "./events";\n')
        target = _touch(package / "events.d.ts", "export interface DamageEvent { amount: number }\n")

        resolved = PackageResolver().resolve("game-types", tmp_path / "reg.ts", "DamageEvent")
        assert resolved is not None
        assert resolved.resolve() == target.resolve()

    def test_missing_package(self, tmp_path: Path) -> None:
        assert PackageResolver().resolve("absent", tmp_path / "reg.ts") is None


class TestChain:
    def test_first_hit_wins(self, tmp_path: Path) -> None:
        target = _touch(tmp_path / "a.ts")
        chain = ChainedResolver([PackageResolver(), LocalFileResolver()])
        assert chain.resolve("./a", tmp_path / "reg.ts") == target

    def test_build_resolver_discovers_tsconfig(self, tmp_path: Path) -> None:
        _touch(tmp_path / "tsconfig.json", '{ "compilerOptions": { "paths": { "@x": ["./lib/x.ts"] } } }')
        target = _touch(tmp_path / "lib" / "x.ts")
        resolver = build_resolver(tmp_path)

        resolved = resolver.resolve("@x", tmp_path / "reg.ts")
        assert resolved is not None
        assert resolved.resolve() == target.resolve()
