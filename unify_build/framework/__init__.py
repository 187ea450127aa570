"""Build config resolution engine.

This package turns a `build.config.json` document into an immutable
`BuildContext`, validates group definitions against the filesystem, and
migrates legacy single-directory configs to the projectGroups schema.

Common entrypoints:

- `unify_build.framework.loader`: `load_build_context` / `load_build_context_from_path`
- `unify_build.framework.validation`: `validate_config_file` / `validate_semantic`
- `unify_build.framework.migration`: `detect_schema_version` / `migrate_config_file`

Leaf helpers with no knowledge of the config model live in `unify_build.foundation`.
"""
