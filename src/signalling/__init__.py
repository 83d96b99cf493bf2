from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("signalling-task")
except PackageNotFoundError:
    __version__ = "unknown"
