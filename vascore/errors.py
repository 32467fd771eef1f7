from __future__ import annotations


class ProfileError(ValueError):
    """The profile cannot be compiled as authored."""


class UnsupportedWatcherError(ProfileError, NotImplementedError):
    """The watcher type is reserved but not implemented by the engine."""


class DrainTimeout(TimeoutError):
    """In-flight scans did not finish in time; the compile can be retried."""


class NotCompiledError(RuntimeError):
    pass


class AliasError(KeyError):
    pass


class AmbiguousAliasError(AliasError):
    pass


class SettingTypeError(ValueError):
    pass
