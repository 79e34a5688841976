"""Build libget-style package repositories from directories of pkgbuild.json packages."""

__version__ = "0.1.0"
