"""
featureslice: Move a flat front-end codebase into a feature-sliced layout.

featureslice indexes a TypeScript/JavaScript source tree, works out which
enumerated Feature (or SHARED) owns each file, and writes a rewritten tree:
- Imports re-pointed at the new locations
- Local persistence calls bound to remote API contract entries
- Nothing committed unless every layout invariant holds

Usage:
    from featureslice.core import load_scope
    from featureslice.core.engine import Migration

    scope = load_scope(Path("featureslice.toml"))
    report = Migration(scope).run(Path("../migrated"), dry_run=True)
"""

__version__ = "0.1.0"
