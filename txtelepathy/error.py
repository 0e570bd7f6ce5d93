"""
Error names and exception classes used by the Telepathy client proxies.

Errors reported through L{pending.PendingOperation} are (name, message)
pairs. The names form an open set: the constants below are the ones this
library produces itself, but any D-Bus error name returned by a remote
service is passed through unchanged.
"""
from txdbus import error as dbus_error

from txtelepathy import constants


ERROR_PREFIX      = 'org.freedesktop.Telepathy.Error'

DISCONNECTED      = ERROR_PREFIX + '.Disconnected'
NETWORK_ERROR     = ERROR_PREFIX + '.NetworkError'
NOT_AVAILABLE     = ERROR_PREFIX + '.NotAvailable'
NOT_IMPLEMENTED   = ERROR_PREFIX + '.NotImplemented'
INVALID_ARGUMENT  = ERROR_PREFIX + '.InvalidArgument'
NOT_YOURS         = ERROR_PREFIX + '.NotYours'
CANCELLED         = ERROR_PREFIX + '.Cancelled'

NAME_HAS_NO_OWNER = 'org.freedesktop.DBus.Error.NameHasNoOwner'
NO_REPLY          = 'org.freedesktop.DBus.Error.NoReply'

INTERNAL          = 'org.txtelepathy.Error.Internal'


_NETWORK_REASONS = frozenset([
    constants.CONNECTION_STATUS_REASON_NETWORK_ERROR,
    constants.CONNECTION_STATUS_REASON_AUTHENTICATION_FAILED,
    constants.CONNECTION_STATUS_REASON_ENCRYPTION_ERROR,
    constants.CONNECTION_STATUS_REASON_CERT_NOT_PROVIDED,
    constants.CONNECTION_STATUS_REASON_CERT_UNTRUSTED,
    constants.CONNECTION_STATUS_REASON_CERT_EXPIRED,
    constants.CONNECTION_STATUS_REASON_CERT_NOT_ACTIVATED,
    constants.CONNECTION_STATUS_REASON_CERT_HOSTNAME_MISMATCH,
    constants.CONNECTION_STATUS_REASON_CERT_FINGERPRINT_MISMATCH,
    constants.CONNECTION_STATUS_REASON_CERT_SELF_SIGNED,
    constants.CONNECTION_STATUS_REASON_CERT_OTHER_ERROR,
    ])



class TelepathyError (Exception):
    """
    Raised (or used to errback Deferreds) when a pending operation fails

    @ivar errorName: D-Bus error name describing the failure
    @ivar errorMessage: Human readable debugging message
    """

    def __init__(self, errorName, errorMessage=''):
        Exception.__init__(self, errorName, errorMessage)
        self.dbusErrorName = errorName
        self.errorName     = errorName
        self.errorMessage  = errorMessage

    def __str__(self):
        if self.errorMessage:
            return '%s: %s' % (self.errorName, self.errorMessage)
        return self.errorName



def statusReasonToErrorName(reason):
    """
    Maps a Connection_Status_Reason code to the error name used to
    invalidate a connection that went Disconnected for that reason.
    """
    if reason in _NETWORK_REASONS:
        return NETWORK_ERROR

    if reason == constants.CONNECTION_STATUS_REASON_NAME_IN_USE:
        return NOT_YOURS

    return DISCONNECTED



def fromFailure(failure):
    """
    Converts a L{twisted.python.failure.Failure} (or a bare exception) coming
    back from the transport into an (errorName, errorMessage) tuple.
    """
    e = getattr(failure, 'value', failure)

    if isinstance(e, TelepathyError):
        return e.errorName, e.errorMessage

    if isinstance(e, dbus_error.RemoteError):
        return e.errName, getattr(e, 'message', None) or ''

    if isinstance(e, dbus_error.TimeOut):
        return NO_REPLY, str(e)

    return INTERNAL, '%s: %s' % (e.__class__.__name__, e)
