from .repository import (
    RepositoryBuilder,
    discover_packages,
    resolve_output_dir,
)
