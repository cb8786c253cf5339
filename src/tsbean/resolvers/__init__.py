from tsbean.resolvers.aliased import AliasedPathResolver
from tsbean.resolvers.chain import ChainedResolver, build_resolver
from tsbean.resolvers.local import LocalFileResolver
from tsbean.resolvers.package import PackageResolver
from tsbean.resolvers.tsconfig import TsConfig, find_tsconfig, load_tsconfig

__all__ = [
    "AliasedPathResolver",
    "ChainedResolver",
    "LocalFileResolver",
    "PackageResolver",
    "TsConfig",
    "build_resolver",
    "find_tsconfig",
    "load_tsconfig",
]
