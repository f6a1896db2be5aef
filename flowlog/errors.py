"""Errors raised by the FlowLog engine."""


class FlowLogError(Exception):
    """Base exception for all engine errors"""


class SessionAlreadyActiveError(FlowLogError):
    """A session is already running or paused"""


class NoActiveSessionError(FlowLogError):
    """No session is running or paused"""


class SessionNotFoundError(FlowLogError):
    """No session matches the given id"""


class TaskNotFoundError(FlowLogError):
    """No task matches the given id"""


class InvalidMethodologyError(FlowLogError, ValueError):
    """Unknown methodology name"""


class StorageError(FlowLogError):
    """The storage backend failed"""
