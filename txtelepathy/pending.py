"""
Pending operations: results that are not known yet.

A L{PendingOperation} finishes exactly once, either successfully or with an
(errorName, errorMessage) pair. Interested parties register with
L{PendingOperation.notifyOnFinished}, or ask for a Deferred with
L{PendingOperation.getDeferred}.
"""
from twisted.internet import defer
from twisted.python import log

from txtelepathy import error
from txtelepathy.debug import debug, warning


class PendingOperation (object):
    """
    Base class for all asynchronous operations of the proxies

    @ivar errorName: Error name if the operation failed, otherwise None
    @ivar errorMessage: Error message if the operation failed, otherwise None
    """
    errorName    = None
    errorMessage = None

    def __init__(self):
        self._finished  = False
        self._callbacks = list()


    def isFinished(self):
        return self._finished


    def isValid(self):
        """
        @returns: True if the operation finished successfully
        """
        return self._finished and self.errorName is None


    def isError(self):
        return self._finished and self.errorName is not None


    def notifyOnFinished(self, callback):
        """
        Registers a callback to be called with this operation as its only
        argument when the operation finishes. If the operation has already
        finished, the callback is called immediately.
        """
        if self._finished:
            callback(self)
        else:
            self._callbacks.append(callback)


    def cancelNotifyOnFinished(self, callback):
        """
        Cancels a callback previously registered with notifyOnFinished
        """
        if callback in self._callbacks:
            self._callbacks.remove(callback)


    def getDeferred(self):
        """
        @rtype: L{twisted.internet.defer.Deferred}
        @returns: a Deferred that is called back with this operation on
                  success or errbacked with an L{error.TelepathyError} on
                  failure
        """
        d = defer.Deferred()

        def finished(op):
            if op.isError():
                d.errback(error.TelepathyError(op.errorName, op.errorMessage))
            else:
                d.callback(op)

        self.notifyOnFinished(finished)

        return d


    def chain(self, other):
        """
        Finishes this operation with the result of C{other} once C{other}
        finishes.
        """
        def finished(op):
            if op.isError():
                self.setFinishedWithError(op.errorName, op.errorMessage)
            else:
                self.setFinished()

        other.notifyOnFinished(finished)


    def setFinished(self):
        self._finish(None, None)


    def setFinishedWithError(self, errorName, errorMessage=''):
        if not errorName:
            warning('%s finished with an empty error name',
                    self.__class__.__name__)
            errorName = error.INTERNAL
        self._finish(errorName, errorMessage or '')


    def setFinishedWithFailure(self, failure):
        self.setFinishedWithError(*error.fromFailure(failure))


    def _finish(self, errorName, errorMessage):
        if self._finished:
            warning('%s finished more than once, ignoring',
                    self.__class__.__name__)
            return

        if errorName is not None:
            debug('%s failed with %s: %s', self.__class__.__name__,
                  errorName, errorMessage)

        self.errorName    = errorName
        self.errorMessage = errorMessage
        self._finished    = True

        callbacks, self._callbacks = self._callbacks, list()

        for cb in callbacks:
            try:
                cb(self)
            except Exception:
                log.err()



class PendingSuccess (PendingOperation):
    """
    An operation that has already succeeded
    """

    def __init__(self):
        PendingOperation.__init__(self)
        self.setFinished()



class PendingFailure (PendingOperation):
    """
    An operation that has already failed
    """

    def __init__(self, errorName, errorMessage=''):
        PendingOperation.__init__(self)
        self.setFinishedWithError(errorName, errorMessage)



class PendingVoidMethodCall (PendingOperation):
    """
    Tracks a remote method call whose return value is of no interest
    """

    def __init__(self, d):
        PendingOperation.__init__(self)

        d.addCallbacks(self._cbReply, self.setFinishedWithFailure)


    def _cbReply(self, _):
        self.setFinished()
