from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("near-exporter")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["cli", "collector", "core", "daemon", "registry", "rpc", "types", "utils"]
