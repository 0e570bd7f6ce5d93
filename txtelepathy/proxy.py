"""
Base class for the client-side proxies of remote Telepathy objects
"""
import weakref

from twisted.internet import reactor as _globalReactor
from twisted.python import log

from txtelepathy import constants, error
from txtelepathy.debug import debug, warning


def notifyAll(callbacks, *args):
    """
    Calls each callback with the supplied arguments. The list is copied first
    so callbacks may register or cancel callbacks while being notified. A
    callback that raises is logged and does not prevent the others from
    running.
    """
    for cb in list(callbacks):
        try:
            cb(*args)
        except Exception:
            log.err()



def weakCallback(method):
    """
    Wraps a bound method so the returned callable does not keep the method's
    instance alive. Once the instance is gone, calls are silently dropped.
    """
    ref = weakref.WeakMethod(method)

    def caller(*args):
        m = ref()
        if m is not None:
            m(*args)

    return caller



class DBusProxy (object):
    """
    Proxy for a remote object identified by (bus name, object path) on one
    bus connection.

    A proxy is valid until it is invalidated, either explicitly or because the
    owner of its bus name went away. Invalidation is permanent; a fresh proxy
    must be created to talk to the object again.

    @ivar transport: Provider of L{transport.IBusTransport}
    @ivar busName: Bus name of the service exporting the object
    @ivar objectPath: Path of the remote object
    @ivar reactor: Reactor used for all deferred work of the proxy
    """

    def __init__(self, transport, busName, objectPath, reactor=None):
        if reactor is None:
            reactor = _globalReactor

        self.transport      = transport
        self.busName        = busName
        self.objectPath     = objectPath
        self.reactor        = reactor

        self._valid         = True
        self._invalidReason = (None, None)
        self._invalidCBs    = list()
        self._signalRules   = list()

        if not busName.startswith(':'):
            self._watchNameOwner()


    def __repr__(self):
        return '<%s %s %s%s>' % (self.__class__.__name__, self.busName,
                                 self.objectPath,
                                 '' if self._valid else ' (invalid)')


    def isValid(self):
        return self._valid


    def invalidationReason(self):
        """
        @returns: (errorName, errorMessage) the proxy was invalidated with, or
                  (None, None) while it is still valid
        """
        return self._invalidReason


    def notifyOnInvalidated(self, callback):
        """
        @type callback: Callable accepting the proxy, an error name and an
                        error message
        @param callback: Function called, from the reactor, once the proxy
                         has been invalidated
        """
        self._invalidCBs.append(callback)


    def cancelNotifyOnInvalidated(self, callback):
        """
        Cancels a callback previously registered with notifyOnInvalidated
        """
        if callback in self._invalidCBs:
            self._invalidCBs.remove(callback)


    def invalidate(self, errorName, errorMessage=''):
        """
        Marks the proxy invalid. isValid() returns False as soon as this
        method returns; registered callbacks are notified on the next
        iteration of the reactor. Invalidating an invalid proxy does
        nothing.
        """
        if not self._valid:
            return

        debug('Proxy %s %s invalidated: %s: %s', self.busName,
              self.objectPath, errorName, errorMessage)

        self._valid         = False
        self._invalidReason = (errorName, errorMessage or '')

        self._invalidated()
        self._cancelSignalRules()

        self.reactor.callLater(0, self._emitInvalidated)


    def _invalidated(self):
        """
        Called synchronously by L{invalidate}. Subclasses override this to
        tear down their own state.
        """


    def _emitInvalidated(self):
        callbacks, self._invalidCBs = self._invalidCBs, list()

        notifyAll(callbacks, self, *self._invalidReason)


    def watchSignal(self, interface, signalName, method, arg=None,
                    busName=None, objectPath=None):
        """
        Subscribes a bound method of this proxy to a signal. The subscription
        does not keep the proxy alive and is cancelled when the proxy is
        invalidated.

        @param busName: Sender to match. Defaults to the proxy's bus name.
        @param objectPath: Path to match. Defaults to the proxy's object path.

        @rtype: L{twisted.internet.defer.Deferred}
        @returns: Deferred to the rule id of the subscription
        """
        d = self.transport.notifyOnSignal(
            busName if busName is not None else self.busName,
            objectPath if objectPath is not None else self.objectPath,
            interface, signalName, weakCallback(method), arg)

        def added(ruleId):
            if self._valid:
                self._signalRules.append(ruleId)
            else:
                self.transport.cancelSignalNotification(ruleId)
            return ruleId

        d.addCallback(added)

        return d


    def _cancelSignalRules(self):
        rules, self._signalRules = self._signalRules, list()

        for ruleId in rules:
            self.transport.cancelSignalNotification(ruleId)


    def _watchNameOwner(self):
        d = self.watchSignal(constants.DBUS_INTERFACE, 'NameOwnerChanged',
                             self._onNameOwnerChanged,
                             arg        = [(0, self.busName)],
                             busName    = constants.DBUS_SERVICE,
                             objectPath = constants.DBUS_PATH)

        def err(failure):
            warning('Unable to watch the owner of %s: %s', self.busName,
                    failure.getErrorMessage())

        d.addErrback(err)


    def _onNameOwnerChanged(self, name, oldOwner, newOwner):
        if name != self.busName:
            return

        if not newOwner:
            self.invalidate(error.NAME_HAS_NO_OWNER,
                            'Name owner lost (service crashed?)')
