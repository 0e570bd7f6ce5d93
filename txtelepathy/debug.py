"""
Debug and warning output.

Messages are routed through L{twisted.python.log} so that they reach
whatever observers the application has installed. The log level is attached
to each event so that L{twisted.python.log.PythonLoggingObserver} files them
correctly.
"""
import logging

from twisted.python import log


_debugEnabled    = False
_warningsEnabled = True


def enableDebug(enabled):
    """
    Enables or disables debug output for the whole process. Disabled by
    default.
    """
    global _debugEnabled
    _debugEnabled = bool(enabled)


def enableWarnings(enabled):
    """
    Enables or disables warning output for the whole process. Enabled by
    default.
    """
    global _warningsEnabled
    _warningsEnabled = bool(enabled)


def debug(fmt, *args):
    if _debugEnabled:
        log.msg(fmt % args if args else fmt,
                system='txtelepathy', logLevel=logging.DEBUG)


def warning(fmt, *args):
    if _warningsEnabled:
        log.msg('WARNING: ' + (fmt % args if args else fmt),
                system='txtelepathy', logLevel=logging.WARNING)
