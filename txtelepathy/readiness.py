"""
Feature readiness tracking for proxies.

A proxy publishes a set of optional features. Each feature is described by
an L{Introspectable}: the proxy statuses it makes sense in, the features and
remote interfaces it depends on, and the function that introspects it. The
L{ReadinessHelper} accepts requests to make arbitrary sets of features
ready, starts the introspection of each feature once its prerequisites are
met, and finishes each request once every requested feature is either
ready or known to be missing.

Feature identifiers are opaque hashable values (typically tuples).
"""
from twisted.internet import reactor as _globalReactor

from txtelepathy import error
from txtelepathy.debug import debug, warning
from txtelepathy.pending import PendingOperation


class Introspectable (object):
    """
    Describes how a single feature is made ready

    @ivar makesSenseForStatuses: Statuses in which the feature can be
                                 introspected. In any other supported status
                                 the feature is missing.
    @ivar dependsOnFeatures: Features that must be ready first
    @ivar dependsOnInterfaces: Interfaces the remote object must implement
    @ivar introspect: Callable taking no arguments that starts the
                      introspection. It must eventually report back through
                      L{ReadinessHelper.setIntrospectCompleted}.
    """
    __slots__ = ['makesSenseForStatuses', 'dependsOnFeatures',
                 'dependsOnInterfaces', 'introspect']

    def __init__(self, makesSenseForStatuses, dependsOnFeatures,
                 dependsOnInterfaces, introspect):
        self.makesSenseForStatuses = frozenset(makesSenseForStatuses)
        self.dependsOnFeatures     = frozenset(dependsOnFeatures)
        self.dependsOnInterfaces   = frozenset(dependsOnInterfaces)
        self.introspect            = introspect



class PendingReady (PendingOperation):
    """
    Finishes when the requested features of a proxy are ready

    @ivar features: The requested features
    @ivar proxy: The proxy being made ready
    """

    def __init__(self, features, proxy):
        PendingOperation.__init__(self)
        self.features = frozenset(features)
        self.proxy    = proxy



class ReadinessHelper (object):
    """
    Resolves feature readiness for one proxy.

    The owning proxy feeds the helper with its current status and the list
    of interfaces the remote object implements. The helper only introspects
    while the current status is one of the supported statuses; in any other
    status requests wait.
    """

    def __init__(self, proxy, currentStatus, introspectables=None,
                 supportedStatuses=None, reactor=None):
        """
        @param proxy: The L{proxy.DBusProxy} whose features are tracked

        @param currentStatus: Initial status

        @param introspectables: Mapping of feature => L{Introspectable}

        @param supportedStatuses: Statuses in which introspection happens.
                                  Defaults to every status some feature
                                  makes sense for.
        """
        if reactor is None:
            reactor = _globalReactor

        self.proxy              = proxy
        self.reactor            = reactor
        self._currentStatus     = currentStatus
        self._pendingStatus     = None
        self._introspectables   = dict()
        self._explicitSupported = supportedStatuses is not None
        self._supportedStatuses = set(supportedStatuses or [])
        self._interfaces        = list()
        self._interfacesKnown   = False
        self._requested         = set()
        self._satisfied         = set()
        self._missing           = set()
        self._inFlight          = set()
        self._pendingOps        = list()
        self._iterationCall     = None
        self._statusReadyCBs    = list()
        self._statusReadyFired  = False

        if introspectables:
            self.addIntrospectables(introspectables)

        proxy.notifyOnInvalidated(self._onProxyInvalidated)


    def addIntrospectables(self, introspectables):
        """
        Adds features. Features are considered in the order they were added.
        """
        for feature, introspectable in introspectables.items():
            if feature in self._introspectables:
                warning('Feature %r registered twice, keeping the first '
                        'registration', feature)
                continue

            self._introspectables[feature] = introspectable

            if not self._explicitSupported:
                self._supportedStatuses |= introspectable.makesSenseForStatuses

        self._scheduleIteration()


    def currentStatus(self):
        return self._currentStatus


    def setCurrentStatus(self, status):
        """
        Changes the current status. All features become unresolved again and
        the requested ones are introspected anew for the new status. While
        any introspection is in progress the change is deferred until it
        completes.
        """
        if status == self._currentStatus and self._pendingStatus is None:
            return

        if self._inFlight:
            debug('Status changed to %r while introspection is in progress, '
                  'deferring the change', status)
            self._pendingStatus = status
            return

        self._applyStatus(status)


    def _applyStatus(self, status):
        debug('Readiness status changed from %r to %r', self._currentStatus,
              status)

        self._pendingStatus = None
        self._currentStatus = status

        self._satisfied.clear()
        self._missing.clear()
        self._statusReadyFired = False

        self._scheduleIteration()


    def interfaces(self):
        return list(self._interfaces)


    def setInterfaces(self, interfaces):
        self._interfaces      = list(interfaces)
        self._interfacesKnown = True
        self._scheduleIteration()


    def requestedFeatures(self):
        return frozenset(self._requested)


    def actualFeatures(self):
        return frozenset(self._satisfied)


    def missingFeatures(self):
        return frozenset(self._missing)


    def inProgressFeatures(self):
        return frozenset(self._inFlight)


    def isReady(self, features):
        """
        @returns: True if every feature is either ready or missing
        """
        if not self.proxy.isValid():
            return False

        features = frozenset(features)

        return features <= (self._satisfied | self._missing)


    def becomeReady(self, features):
        """
        Requests that the given features become ready.

        @rtype: L{PendingReady}
        """
        features = frozenset(features)

        if not self.proxy.isValid():
            op = PendingReady(features, self.proxy)
            op.setFinishedWithError(*self.proxy.invalidationReason())
            return op

        unknown = [f for f in features if f not in self._introspectables]

        if unknown:
            warning('becomeReady called with unknown features %r', unknown)
            op = PendingReady(features, self.proxy)
            op.setFinishedWithError(error.INVALID_ARGUMENT,
                                    'Requested features contains unsupported '
                                    'feature')
            return op

        for op in self._pendingOps:
            if op.features == features:
                debug('Returning cached pending operation')
                return op

        if self.isReady(features):
            op = PendingReady(features, self.proxy)
            op.setFinished()
            return op

        self._requested |= self._withDependencies(features)
        self._statusReadyFired = False

        debug('Creating new pending operation for features %r', features)

        op = PendingReady(features, self.proxy)
        self._pendingOps.append(op)

        self._scheduleIteration()

        return op


    def setIntrospectCompleted(self, feature, success):
        """
        Reports the outcome of a feature introspection
        """
        if not self.proxy.isValid():
            return

        if feature not in self._inFlight:
            warning('setIntrospectCompleted called for feature %r which is '
                    'not being introspected', feature)
            return

        debug('Introspection of feature %r %s', feature,
              'succeeded' if success else 'failed')

        self._inFlight.discard(feature)

        if success:
            self._satisfied.add(feature)
        else:
            self._missing.add(feature)

        if not self._inFlight and self._pendingStatus is not None:
            self._applyStatus(self._pendingStatus)

        self._scheduleIteration()


    def notifyOnStatusReady(self, callback):
        """
        Registers a callback called with the current status each time every
        requested feature has been resolved for that status
        """
        self._statusReadyCBs.append(callback)


    def cancelNotifyOnStatusReady(self, callback):
        if callback in self._statusReadyCBs:
            self._statusReadyCBs.remove(callback)


    def _withDependencies(self, features):
        result  = set()
        pending = list(features)

        while pending:
            f = pending.pop()
            if f in result or f not in self._introspectables:
                continue
            result.add(f)
            pending.extend(self._introspectables[f].dependsOnFeatures)

        return result


    def _scheduleIteration(self):
        if self._iterationCall is None:
            self._iterationCall = self.reactor.callLater(0,
                                                         self._iterate)


    def _iterate(self):
        self._iterationCall = None

        if not self.proxy.isValid():
            return

        if self._currentStatus not in self._supportedStatuses:
            debug('Status %r not supported, waiting for a supported one',
                  self._currentStatus)
            return

        resolved = self._satisfied | self._missing | self._inFlight
        ordered  = [f for f in self._introspectables
                    if f in self._requested and f not in resolved]

        interfaces = set(self._interfaces)

        # Propagate missing features until nothing changes
        changed = True
        while changed:
            changed = False
            for f in ordered:
                if f in self._missing:
                    continue
                if self._isKnownMissing(f, interfaces):
                    debug('Feature %r is missing', f)
                    self._missing.add(f)
                    changed = True

        starting = list()

        for f in ordered:
            if f in self._missing:
                continue

            intro = self._introspectables[f]

            if not intro.dependsOnFeatures <= self._satisfied:
                continue

            if not intro.dependsOnInterfaces <= interfaces:
                continue

            starting.append(f)

        for f in starting:
            self._inFlight.add(f)

        for f in starting:
            if not self.proxy.isValid():
                return
            debug('Introspecting feature %r', f)
            self._introspectables[f].introspect()

        self._updatePendingOperations()

        if self._statusReadyFired or self._inFlight:
            return

        if self._requested <= (self._satisfied | self._missing):
            self._statusReadyFired = True
            for cb in list(self._statusReadyCBs):
                cb(self._currentStatus)


    def _isKnownMissing(self, feature, interfaces):
        intro = self._introspectables[feature]

        if self._currentStatus not in intro.makesSenseForStatuses:
            return True

        if intro.dependsOnFeatures & self._missing:
            return True

        if self._interfacesKnown and not intro.dependsOnInterfaces <= interfaces:
            return True

        return False


    def _updatePendingOperations(self):
        for op in list(self._pendingOps):
            if self.isReady(op.features):
                self._pendingOps.remove(op)
                op.setFinished()


    def _onProxyInvalidated(self, proxy, errorName, errorMessage):
        if self._iterationCall is not None and self._iterationCall.active():
            self._iterationCall.cancel()
        self._iterationCall = None

        ops, self._pendingOps = self._pendingOps, list()

        for op in ops:
            op.setFinishedWithError(errorName, errorMessage)
