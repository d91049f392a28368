
from .common import (QuarryError, InvalidRecipeError, RecipeNotFound, FetchError,
                     FingerprintError, PackagingError, VersionCompareError,
                     QueueProcessingError, DependencyStall)
from .recipe import Recipe
from .recipe_store import (RecipeStore, RecipeResolver, MemoryRecipeBackend,
                           DirectoryRecipeBackend)
from .version import VersionComparator, parse_version, compare_versions
from .build_cache import BuildCache
from .fingerprint import FingerprintEngine
from .fetchers import create_fetcher, FetchResult
from .packager import Packager, PackageDescriptor
from .package_db import PackageDatabase
from .deferred import DeferredQueue, Scheduler
from .installer import Installer
from .hasher import hash_document
