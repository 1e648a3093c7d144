from __future__ import annotations



class JustPlayError(Exception):
    """Base for all JustPlay exceptions."""


class ConfigError(JustPlayError):
    """Configuration related issues."""


class TaskError(JustPlayError):
    """Task scheduling/execution issues."""


class PersistenceError(JustPlayError):
    """A snapshot could not be durably committed to disk."""
