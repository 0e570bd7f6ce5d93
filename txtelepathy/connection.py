"""
Client-side proxy for Telepathy Connection objects.

A L{Connection} introspects the remote connection through a queue of steps
(see L{introspection.IntrospectQueue}). Its readiness moves forward through
JustCreated, NotYetConnected, Connecting and Full, and ends in Dead once the
connection is disconnected or otherwise invalidated. Optional features are
made ready on request through a L{readiness.ReadinessHelper}.
"""
import weakref

from txtelepathy import constants, error, handles
from txtelepathy.contacts import Contact, ContactManager, PendingContactAttributes
from txtelepathy.debug import debug, warning
from txtelepathy.introspection import IntrospectQueue
from txtelepathy.pending import PendingOperation, PendingFailure, \
     PendingVoidMethodCall
from txtelepathy.proxy import DBusProxy, notifyAll
from txtelepathy.readiness import Introspectable, ReadinessHelper


READINESS_JUST_CREATED      = 0
READINESS_NOT_YET_CONNECTED = 5
READINESS_CONNECTING        = 10
READINESS_FULL              = 15
READINESS_DEAD              = 20

_readinessEdges = {
    READINESS_JUST_CREATED      : frozenset([READINESS_NOT_YET_CONNECTED,
                                             READINESS_CONNECTING,
                                             READINESS_FULL,
                                             READINESS_DEAD]),
    READINESS_NOT_YET_CONNECTED : frozenset([READINESS_CONNECTING,
                                             READINESS_DEAD]),
    READINESS_CONNECTING        : frozenset([READINESS_FULL,
                                             READINESS_DEAD]),
    READINESS_FULL              : frozenset([READINESS_DEAD]),
    READINESS_DEAD              : frozenset(),
}

# Status the readiness helper works with for each live readiness
_readinessStatus = {
    READINESS_NOT_YET_CONNECTED : constants.CONNECTION_STATUS_DISCONNECTED,
    READINESS_CONNECTING        : constants.CONNECTION_STATUS_CONNECTING,
    READINESS_FULL              : constants.CONNECTION_STATUS_CONNECTED,
}

_introspectableStatuses = (constants.CONNECTION_STATUS_DISCONNECTED,
                           constants.CONNECTION_STATUS_CONNECTED)

_selfContactFeatures = (Contact.FeatureAlias,
                        Contact.FeatureAvatarToken,
                        Contact.FeatureSimplePresence)



def _releaseHandles(transport, busName, objectPath, handleType, handleList):
    debug('Releasing %d handles of type %d on %s', len(handleList),
          handleType, busName)

    d = transport.callRemote(objectPath, 'ReleaseHandles',
                             interface   = constants.CONN_INTERFACE,
                             destination = busName,
                             signature   = 'uau',
                             body        = [handleType, list(handleList)])

    def err(failure):
        warning('ReleaseHandles of type %d failed: %s', handleType,
                failure.getErrorMessage())

    d.addErrback(err)



def _disposeHandleContext(transport, busName, objectPath, context):
    for handleType, handleList in handles.releaseContext(context):
        _releaseHandles(transport, busName, objectPath, handleType,
                        handleList)



class PendingChannel (PendingOperation):
    """
    Result of L{Connection.createChannel} and L{Connection.ensureChannel}

    @ivar connection: The connection the request was made on
    @ivar request: The channel request
    @ivar create: True for createChannel, False for ensureChannel
    """

    def __init__(self, connection, request, create, errorName=None,
                 errorMessage=''):
        PendingOperation.__init__(self)
        self.connection = connection
        self.request    = dict(request)
        self.create     = create
        self._yours     = False
        self._path      = None
        self._props     = dict()

        if errorName is not None:
            self.setFinishedWithError(errorName, errorMessage)


    def _track(self, d):
        d.addCallbacks(self._cbReply, self.setFinishedWithFailure)


    def _cbReply(self, reply):
        if self.create:
            path, props = reply
            yours = True
        else:
            yours, path, props = reply

        debug('Got reply to %s: %s', 'CreateChannel' if self.create else
              'EnsureChannel', path)

        self._yours = bool(yours)
        self._path  = path
        self._props = dict(props)

        self.setFinished()


    def _checkValid(self, name):
        if not self.isFinished():
            warning('PendingChannel.%s() called before finished', name)
            return False
        if not self.isValid():
            warning('PendingChannel.%s() called when errored', name)
            return False
        return True


    def yours(self):
        """
        @returns: True if the channel was created by this request. Always
                  True for createChannel.
        """
        self._checkValid('yours')
        return self._yours


    def objectPath(self):
        self._checkValid('objectPath')
        return self._path


    def immutableProperties(self):
        self._checkValid('immutableProperties')
        return dict(self._props)


    def channelType(self):
        if self._checkValid('channelType'):
            return self._props.get(constants.CHANNEL_TYPE,
                                   self.request.get(constants.CHANNEL_TYPE))


    def targetHandleType(self):
        if self._checkValid('targetHandleType'):
            return self._props.get(constants.CHANNEL_TARGET_HANDLE_TYPE,
                       self.request.get(constants.CHANNEL_TARGET_HANDLE_TYPE,
                                        constants.HANDLE_TYPE_NONE))


    def targetHandle(self):
        if self._checkValid('targetHandle'):
            return self._props.get(constants.CHANNEL_TARGET_HANDLE,
                       self.request.get(constants.CHANNEL_TARGET_HANDLE, 0))



class PendingConnect (PendingOperation):
    """
    Result of L{Connection.requestConnect}. Finishes once Connect() has
    returned, the connection has reached the Connected status and the
    requested features are ready.
    """

    def __init__(self, connection, features):
        PendingOperation.__init__(self)
        self.connection = connection
        self.features   = frozenset(features)

        connection.notifyOnInvalidated(self._onInvalidated)

        d = connection._callConn('Connect')
        d.addCallbacks(self._cbConnectReply, self._ebConnectReply)


    def _cbConnectReply(self, _):
        if self.isFinished():
            return

        if not self.connection.isValid():
            self.setFinishedWithError(*self.connection.invalidationReason())
            return

        if self.connection.status() == constants.CONNECTION_STATUS_CONNECTED:
            self._becomeReady()
        else:
            debug('Connect() returned, waiting for the Connected status')
            self.connection.notifyOnStatusChanged(self._onStatusChanged)


    def _ebConnectReply(self, failure):
        if not self.isFinished():
            self.setFinishedWithFailure(failure)


    def _onStatusChanged(self, status, reason):
        if status == constants.CONNECTION_STATUS_CONNECTED:
            self.connection.cancelNotifyOnStatusChanged(self._onStatusChanged)
            self._becomeReady()


    def _becomeReady(self):
        self.connection.becomeReady(self.features).notifyOnFinished(
            self._readyFinished)


    def _readyFinished(self, op):
        if self.isFinished():
            return

        if op.isError():
            self.setFinishedWithError(op.errorName, op.errorMessage)
        else:
            self.setFinished()


    def _onInvalidated(self, proxy, errorName, errorMessage):
        if not self.isFinished():
            self.setFinishedWithError(errorName, errorMessage)


    def _finish(self, errorName, errorMessage):
        self.connection.cancelNotifyOnInvalidated(self._onInvalidated)
        self.connection.cancelNotifyOnStatusChanged(self._onStatusChanged)
        PendingOperation._finish(self, errorName, errorMessage)



class Connection (DBusProxy):
    """
    Proxy for a remote Telepathy Connection.

    Construction starts the introspection on the next reactor iteration.
    Accessors never block; they return the last known values and warn when
    used before the information they return has been retrieved.

    @cvar FeatureCore: The connection status, interfaces, self handle and
                       (with the Contacts interface) self contact. Always
                       included in the features made ready.
    @cvar FeatureSimplePresence: The presence statuses the connection
                                 accepts for the user
    """

    FeatureCore           = ('txtelepathy.Connection', 0)
    FeatureSimplePresence = ('txtelepathy.Connection', 1)

    def __init__(self, transport, busName, objectPath, reactor=None):
        DBusProxy.__init__(self, transport, busName, objectPath, reactor)

        self._readiness              = READINESS_JUST_CREATED
        self._status                 = constants.CONNECTION_STATUS_UNKNOWN
        self._statusReason           = constants.CONNECTION_STATUS_REASON_NONE_SPECIFIED
        self._pendingStatus          = constants.CONNECTION_STATUS_UNKNOWN
        self._pendingStatusReason    = constants.CONNECTION_STATUS_REASON_NONE_SPECIFIED
        self._haveInitialStatus      = False
        self._initialIntrospection   = False

        self._interfaces             = list()
        self._selfHandle             = 0
        self._selfHandleWatched      = False
        self._selfContact            = None
        self._contactAttrInterfaces  = list()
        self._simpleStatuses         = dict()
        self._simplePresenceResult   = None
        self._simplePresenceGeneration = 0
        self._handleContext          = None

        self._statusCBs              = list()
        self._selfHandleCBs          = list()
        self._selfContactCBs         = list()

        self._contactManager         = ContactManager(self)
        self._queue                  = IntrospectQueue(self._onQueueDrained)

        core = Introspectable(_introspectableStatuses, (), (),
                              self._introspectCoreFeature)

        presence = Introspectable(_introspectableStatuses,
                                  (Connection.FeatureCore,),
                                  (constants.CONN_INTERFACE_SIMPLE_PRESENCE,),
                                  self._introspectSimplePresenceFeature)

        introspectables = dict()
        introspectables[ Connection.FeatureCore ]           = core
        introspectables[ Connection.FeatureSimplePresence ] = presence

        self._helper = ReadinessHelper(self,
                                       constants.CONNECTION_STATUS_UNKNOWN,
                                       introspectables,
                                       _introspectableStatuses,
                                       self.reactor)

        self._queue.enqueue(self._startIntrospection)

        self.reactor.callLater(0, self._queue.kick)


    # ------------------------------------------------------------------
    # Accessors
    #
    def readiness(self):
        return self._readiness


    def status(self):
        """
        @returns: The connection status. CONNECTION_STATUS_UNKNOWN until the
                  first status has been retrieved.
        """
        if self._readiness == READINESS_JUST_CREATED:
            warning('Connection.status() used with readiness JustCreated')
        return self._status


    def statusReason(self):
        if self._readiness == READINESS_JUST_CREATED:
            warning('Connection.statusReason() used with readiness '
                    'JustCreated')
        return self._statusReason


    def interfaces(self):
        if self._readiness == READINESS_JUST_CREATED:
            warning('Connection.interfaces() used possibly before the list '
                    'of interfaces has been received')
        elif self._readiness == READINESS_DEAD:
            warning('Connection.interfaces() used with readiness Dead')
        return list(self._interfaces)


    def selfHandle(self):
        if self._readiness != READINESS_FULL:
            warning('Connection.selfHandle() used with readiness %d != Full',
                    self._readiness)
        return self._selfHandle


    def selfContact(self):
        if not self.isReady():
            warning('Connection.selfContact() used before the connection is '
                    'ready')
        return self._selfContact


    def contactAttributeInterfaces(self):
        if not self._contactAttrInterfaces and self._readiness != READINESS_FULL:
            warning('Connection.contactAttributeInterfaces() used before the '
                    'contact attribute interfaces have been retrieved')
        return list(self._contactAttrInterfaces)


    def contactManager(self):
        return self._contactManager


    def allowedPresenceStatuses(self):
        """
        @returns: dict of status identifier => (type, may set on self,
                  can have message) for the statuses the user may set
        """
        feature = Connection.FeatureSimplePresence

        if feature in self._helper.missingFeatures():
            warning('Trying to retrieve simple presence from connection, but '
                    'simple presence is not supported')
        elif feature not in self._helper.requestedFeatures():
            warning('Trying to retrieve simple presence from connection '
                    'without calling Connection.becomeReady('
                    'FeatureSimplePresence)')
        elif feature not in self._helper.actualFeatures():
            warning('Trying to retrieve simple presence from connection, but '
                    'simple presence is still being retrieved')

        return dict(self._simpleStatuses)


    # ------------------------------------------------------------------
    # Observers
    #
    def notifyOnStatusChanged(self, callback):
        """
        @param callback: Function called with (status, reason) each time the
                         status reported by L{status} changes
        """
        self._statusCBs.append(callback)


    def cancelNotifyOnStatusChanged(self, callback):
        if callback in self._statusCBs:
            self._statusCBs.remove(callback)


    def notifyOnSelfHandleChanged(self, callback):
        """
        @param callback: Function called with the new self handle
        """
        self._selfHandleCBs.append(callback)


    def cancelNotifyOnSelfHandleChanged(self, callback):
        if callback in self._selfHandleCBs:
            self._selfHandleCBs.remove(callback)


    def notifyOnSelfContactChanged(self, callback):
        """
        @param callback: Function called with the new self L{Contact}
        """
        self._selfContactCBs.append(callback)


    def cancelNotifyOnSelfContactChanged(self, callback):
        if callback in self._selfContactCBs:
            self._selfContactCBs.remove(callback)


    # ------------------------------------------------------------------
    # Readiness
    #
    def _features(self, features):
        features = set(features) if features is not None else set()
        features.add(Connection.FeatureCore)
        return frozenset(features)


    def isReady(self, features=None):
        """
        @returns: True if the core feature and every feature in C{features}
                  are ready or known to be missing
        """
        return self._helper.isReady(self._features(features))


    def becomeReady(self, features=None):
        """
        Makes the core feature and the features in C{features} ready.

        @rtype: L{readiness.PendingReady}
        """
        return self._helper.becomeReady(self._features(features))


    def requestedFeatures(self):
        return self._helper.requestedFeatures()


    def actualFeatures(self):
        return self._helper.actualFeatures()


    def missingFeatures(self):
        return self._helper.missingFeatures()


    # ------------------------------------------------------------------
    # Operations
    #
    def _callConn(self, methodName, signature=None, body=None,
                  interface=constants.CONN_INTERFACE):
        return self.transport.callRemote(self.objectPath, methodName,
                                         interface   = interface,
                                         destination = self.busName,
                                         signature   = signature,
                                         body        = body)


    def requestConnect(self, features=None):
        """
        Asks the connection to connect and makes C{features} ready once it
        has.

        @rtype: L{PendingConnect}
        """
        return PendingConnect(self, self._features(features))


    def requestDisconnect(self):
        return PendingVoidMethodCall(self._callConn('Disconnect'))


    def setSelfPresence(self, status, statusMessage):
        """
        Sets the user's presence through the SimplePresence interface
        """
        if constants.CONN_INTERFACE_SIMPLE_PRESENCE not in self._interfaces:
            return PendingFailure(error.NOT_IMPLEMENTED,
                                  'Connection does not support '
                                  'SimplePresence')

        return PendingVoidMethodCall(
            self._callConn('SetPresence', 'ss', [status, statusMessage],
                           interface=constants.CONN_INTERFACE_SIMPLE_PRESENCE))


    def createChannel(self, request):
        """
        Asks the connection to create a new channel satisfying C{request}.
        The request must contain at least the channel type.

        @rtype: L{PendingChannel}
        """
        return self._requestChannel(request, True)


    def ensureChannel(self, request):
        """
        Like L{createChannel} but returns an existing channel matching
        C{request} when there is one.

        @rtype: L{PendingChannel}
        """
        return self._requestChannel(request, False)


    def _requestChannel(self, request, create):
        methodName = 'CreateChannel' if create else 'EnsureChannel'

        if self._readiness != READINESS_FULL:
            warning('Calling %s with connection not yet connected',
                    methodName)
            return PendingChannel(self, request, create, error.NOT_AVAILABLE,
                                  'Connection not yet connected')

        if constants.CONN_INTERFACE_REQUESTS not in self._interfaces:
            warning('Requests interface is not supported by this connection')
            return PendingChannel(self, request, create,
                                  error.NOT_IMPLEMENTED,
                                  'Connection does not support Requests '
                                  'Interface')

        if constants.CHANNEL_TYPE not in request:
            return PendingChannel(self, request, create,
                                  error.INVALID_ARGUMENT,
                                  'Invalid \'request\' argument')

        debug('Creating a channel' if create else 'Ensuring a channel')

        pending = PendingChannel(self, request, create)

        pending._track(
            self._callConn(methodName, 'a{sv}', [dict(request)],
                           interface=constants.CONN_INTERFACE_REQUESTS))

        return pending


    def requestHandles(self, handleType, names):
        """
        Requests handles of the given type for the given names.

        @rtype: L{handles.PendingHandles}
        """
        debug('Request for %d handles of type %d', len(names), handleType)

        pending = handles.PendingHandles(self, handleType, names=names)

        if not self.isValid():
            pending.setFinishedWithError(*self.invalidationReason())
            return pending

        pending._track(self._callConn('RequestHandles', 'uas',
                                      [handleType, list(names)]))

        return pending


    def referenceHandles(self, handleType, handleList):
        """
        Takes references on handles obtained elsewhere. Only the handles not
        already held in this process are held on the service.

        @rtype: L{handles.PendingHandles}
        """
        pending = handles.PendingHandles(self, handleType,
                                         handles=handleList)

        if not self.isValid():
            pending.setFinishedWithError(*self.invalidationReason())
            return pending

        alreadyHeld, notYetHeld = self._ensureHandleContext().partition(
            handleType, handleList)

        if notYetHeld:
            debug('Need to hold %d of %d handles of type %d', len(notYetHeld),
                  len(handleList), handleType)
            pending._track(self._callConn('HoldHandles', 'uau',
                                          [handleType, notYetHeld]))
        else:
            debug('All %d handles of type %d already held', len(handleList),
                  handleType)
            pending._cbHeld()

        return pending


    def getContactAttributes(self, handleList, interfaces, reference=True):
        """
        Retrieves the attributes of the given contacts.

        @param reference: Whether the valid handles should be referenced. The
                          references are available through the returned
                          operation.

        @rtype: L{contacts.PendingContactAttributes}
        """
        pending = PendingContactAttributes(self, handleList, interfaces,
                                           reference)

        if not self.isValid():
            pending.setFinishedWithError(*self.invalidationReason())
            return pending

        if constants.CONN_INTERFACE_CONTACTS not in self._interfaces:
            pending.setFinishedWithError(error.NOT_IMPLEMENTED,
                                         'The connection doesn\'t support '
                                         'the Contacts interface')
            return pending

        debug('Getting attributes of %d contacts', len(handleList))

        pending._track(
            self._callConn('GetContactAttributes', 'auasb',
                           [list(handleList), list(interfaces), reference],
                           interface=constants.CONN_INTERFACE_CONTACTS))

        return pending


    # ------------------------------------------------------------------
    # Handle reference counting
    #
    def _ensureHandleContext(self):
        if self._handleContext is None:
            self._handleContext = handles.acquireContext(
                self.transport.uniqueName, self.busName)

            f = weakref.finalize(self, _disposeHandleContext, self.transport,
                                 self.busName, self.objectPath,
                                 self._handleContext)
            f.atexit = False

        return self._handleContext


    def handleContext(self):
        return self._ensureHandleContext()


    def refHandle(self, handleType, handle):
        self._ensureHandleContext().ref(handleType, handle)


    def unrefHandle(self, handleType, handle):
        if self._ensureHandleContext().unref(handleType, handle):
            self.reactor.callLater(0, self._doReleaseSweep, handleType)


    def handleRequestStarted(self, handleType):
        self._ensureHandleContext().requestStarted(handleType)


    def handleRequestLanded(self, handleType):
        if self._ensureHandleContext().requestLanded(handleType):
            self.reactor.callLater(0, self._doReleaseSweep, handleType)


    def _doReleaseSweep(self, handleType):
        toRelease = self._handleContext.releaseSweep(handleType)

        if toRelease:
            _releaseHandles(self.transport, self.busName, self.objectPath,
                            handleType, toRelease)


    # ------------------------------------------------------------------
    # Status and readiness state machine
    #
    def _changeReadiness(self, newReadiness):
        if newReadiness == self._readiness:
            return

        if newReadiness not in _readinessEdges[self._readiness]:
            warning('Invalid readiness change from %d to %d, ignoring',
                    self._readiness, newReadiness)
            return

        debug('Readiness changed from %d to %d', self._readiness,
              newReadiness)

        self._readiness = newReadiness

        if newReadiness == READINESS_DEAD:
            self._queue.abandon()
        else:
            self._helper.setCurrentStatus(_readinessStatus[newReadiness])

        if (self._status != self._pendingStatus or
            self._statusReason != self._pendingStatusReason):
            self._status       = self._pendingStatus
            self._statusReason = self._pendingStatusReason
            notifyAll(self._statusCBs, self._status, self._statusReason)


    def _invalidated(self):
        self._pendingStatus = constants.CONNECTION_STATUS_DISCONNECTED
        self._changeReadiness(READINESS_DEAD)


    def _onStatusChanged(self, status, reason):
        debug('StatusChanged from %d to %d with reason %d',
              self._pendingStatus, status, reason)

        if not self.isValid():
            return

        if not self._haveInitialStatus:
            debug('Still haven\'t got the GetStatus reply, ignoring '
                  'StatusChanged until we have (but saving reason)')
            self._pendingStatusReason = reason
            return

        if self._pendingStatus == status:
            warning('New status was the same as the old status! Ignoring '
                    'redundant StatusChanged')
            return

        if (status == constants.CONNECTION_STATUS_CONNECTED and
            self._pendingStatus != constants.CONNECTION_STATUS_CONNECTING):
            warning('Non-compliant connection manager - went straight to '
                    'Connected! Faking a transition through Connecting')
            self._onStatusChanged(constants.CONNECTION_STATUS_CONNECTING,
                                  reason)

        self._pendingStatus       = status
        self._pendingStatusReason = reason

        if status == constants.CONNECTION_STATUS_CONNECTED:
            debug('Performing introspection for the Connected status')
            self._queue.enqueue(self._introspectMain)
            self._queue.kick()

        elif status == constants.CONNECTION_STATUS_CONNECTING:
            if self._readiness < READINESS_CONNECTING:
                self._simplePresenceResult = None
                self._simplePresenceGeneration += 1
                self._changeReadiness(READINESS_CONNECTING)
            else:
                warning('Got unexpected status change to Connecting')

        elif status == constants.CONNECTION_STATUS_DISCONNECTED:
            self.invalidate(error.statusReasonToErrorName(reason),
                            'ConnectionStatusReason = %d' % reason)

        else:
            warning('Unknown connection status %d', status)


    def _onQueueDrained(self):
        if not self.isValid():
            return

        if self._initialIntrospection:
            self._initialIntrospection = False
            if self._readiness < READINESS_NOT_YET_CONNECTED:
                self._changeReadiness(READINESS_NOT_YET_CONNECTED)

        if (self._pendingStatus == constants.CONNECTION_STATUS_CONNECTED and
            self._readiness < READINESS_FULL):
            self._changeReadiness(READINESS_FULL)


    # ------------------------------------------------------------------
    # Introspection steps
    #
    def _startIntrospection(self):
        debug('Connecting to StatusChanged()')

        self._ensureHandleContext()

        d = self.watchSignal(constants.CONN_INTERFACE, 'StatusChanged',
                             self._onStatusChanged)

        d.addCallbacks(self._cbStatusWatched, self._ebGetStatus)


    def _cbStatusWatched(self, _):
        debug('Calling GetStatus()')

        d = self._callConn('GetStatus')

        d.addCallbacks(self._gotStatus, self._ebGetStatus)


    def _ebGetStatus(self, failure):
        warning('GetStatus() failed with %s: %s', *error.fromFailure(failure))

        self.invalidate(error.DISCONNECTED, 'ConnectionStatusReason = %d' %
                        self._pendingStatusReason)


    def _gotStatus(self, status):
        if not self.isValid():
            return

        debug('Got connection status %d', status)

        self._pendingStatus     = status
        self._haveInitialStatus = True

        # The StatusChanged handler introspects once (and if) the connection
        # gets to Connected
        if status == constants.CONNECTION_STATUS_CONNECTING:
            debug('Not introspecting yet because the connection is currently '
                  'Connecting')
            self._changeReadiness(READINESS_CONNECTING)

        elif status == constants.CONNECTION_STATUS_DISCONNECTED:
            debug('Performing introspection for the Disconnected status')
            self._initialIntrospection = True
            self._queue.enqueue(self._introspectMain)

        elif status == constants.CONNECTION_STATUS_CONNECTED:
            debug('Performing introspection for the Connected status')
            self._queue.enqueue(self._introspectMain)

        else:
            warning('Not performing introspection for unknown status %d',
                    status)

        self._queue.stepFinished()


    def _introspectMain(self):
        debug('Calling GetInterfaces()')

        d = self._callConn('GetInterfaces')

        d.addCallbacks(self._gotInterfaces, self._ebInterfaces)


    def _gotInterfaces(self, interfaces):
        self._interfaces = list(interfaces)

        debug('Got reply to GetInterfaces(): %r', self._interfaces)

        self._interfacesKnown()


    def _ebInterfaces(self, failure):
        warning('GetInterfaces() failed with %s: %s - assuming no new '
                'interfaces', *error.fromFailure(failure))

        self._interfacesKnown()


    def _interfacesKnown(self):
        self._helper.setInterfaces(self._interfaces)

        if self._pendingStatus == constants.CONNECTION_STATUS_CONNECTED:
            self._queue.enqueue(self._introspectSelfHandle)

        if (Connection.FeatureSimplePresence in self._helper.requestedFeatures()
            and constants.CONN_INTERFACE_SIMPLE_PRESENCE in self._interfaces
            and self._simplePresenceResult is None
            and self._introspectSimplePresence not in self._queue):
            self._queue.enqueue(self._introspectSimplePresence)

        self._queue.stepFinished()


    def _introspectSelfHandle(self):
        if not self._selfHandleWatched:
            self._selfHandleWatched = True

            d = self.watchSignal(constants.CONN_INTERFACE, 'SelfHandleChanged',
                                 self._onSelfHandleChanged)

            def err(failure):
                warning('Unable to watch SelfHandleChanged: %s',
                        failure.getErrorMessage())

            d.addErrback(err)

        debug('Getting self handle')

        d = self._callConn('GetSelfHandle')

        d.addCallbacks(self._gotSelfHandle, self._ebSelfHandle)


    def _gotSelfHandle(self, handle):
        debug('Got self handle %d', handle)

        self._selfHandle = handle

        self._selfHandleKnown()


    def _ebSelfHandle(self, failure):
        warning('Getting self handle failed with %s: %s',
                *error.fromFailure(failure))

        self._selfHandleKnown()


    def _selfHandleKnown(self):
        if constants.CONN_INTERFACE_CONTACTS in self._interfaces:
            self._queue.enqueue(self._introspectContacts)
        else:
            debug('Connection basic functionality is ready (Don\'t have '
                  'Contacts)')

        self._queue.stepFinished()


    def _introspectContacts(self):
        debug('Getting available interfaces for GetContactAttributes')

        d = self._callConn('Get', 'ss', [constants.CONN_INTERFACE_CONTACTS,
                                         'ContactAttributeInterfaces'],
                           interface=constants.PROPERTIES_INTERFACE)

        d.addCallbacks(self._gotContactAttributeInterfaces,
                       self._ebContactAttributeInterfaces)


    def _gotContactAttributeInterfaces(self, interfaces):
        self._contactAttrInterfaces = list(interfaces)

        debug('Got %d contact attribute interfaces',
              len(self._contactAttrInterfaces))

        self._queue.enqueue(self._introspectSelfContact)
        self._queue.stepFinished()


    def _ebContactAttributeInterfaces(self, failure):
        warning('Getting contact attribute interfaces failed with %s: %s',
                *error.fromFailure(failure))

        self._queue.stepFinished()


    def _introspectSelfContact(self):
        debug('Building self contact')

        pending = self._contactManager.contactsForHandles([self._selfHandle],
                                                          _selfContactFeatures)

        pending.notifyOnFinished(self._gotSelfContact)


    def _gotSelfContact(self, pending):
        if pending.isValid() and pending.contacts():
            contact = pending.contacts()[0]

            if self._selfContact is not contact:
                self._selfContact = contact
                notifyAll(self._selfContactCBs, contact)
        else:
            warning('Getting self contact failed with %s: %s',
                    pending.errorName, pending.errorMessage)

        self._queue.stepFinished()


    def _onSelfHandleChanged(self, handle):
        if handle == self._selfHandle:
            return

        debug('Self handle changed to %d', handle)

        self._selfHandle = handle

        notifyAll(self._selfHandleCBs, handle)

        if (self._readiness == READINESS_FULL and
            constants.CONN_INTERFACE_CONTACTS in self._interfaces and
            self._introspectSelfContact not in self._queue):
            self._queue.enqueue(self._introspectSelfContact)
            self._queue.kick()


    # ------------------------------------------------------------------
    # Features
    #
    def _introspectCoreFeature(self):
        # Everything the core feature covers has been fetched by the time the
        # helper sees a status it supports
        self._helper.setIntrospectCompleted(Connection.FeatureCore, True)


    def _introspectSimplePresenceFeature(self):
        if self._simplePresenceResult is not None:
            self._helper.setIntrospectCompleted(
                Connection.FeatureSimplePresence, self._simplePresenceResult)
            return

        if self._introspectSimplePresence not in self._queue:
            self._queue.enqueue(self._introspectSimplePresence)

        self._queue.kick()


    def _introspectSimplePresence(self):
        debug('Getting available SimplePresence statuses')

        d = self._callConn('Get', 'ss',
                           [constants.CONN_INTERFACE_SIMPLE_PRESENCE,
                            'Statuses'],
                           interface=constants.PROPERTIES_INTERFACE)

        d.addCallbacks(self._gotSimpleStatuses, self._ebSimpleStatuses,
                       callbackArgs=(self._simplePresenceGeneration,),
                       errbackArgs=(self._simplePresenceGeneration,))


    def _gotSimpleStatuses(self, statuses, generation):
        debug('Got %d simple presence statuses', len(statuses))

        if generation == self._simplePresenceGeneration:
            self._simpleStatuses = dict( (k, tuple(v))
                                         for k, v in statuses.items() )

        self._simplePresenceKnown(True, generation)


    def _ebSimpleStatuses(self, failure, generation):
        warning('Getting simple presence statuses failed with %s: %s',
                *error.fromFailure(failure))

        self._simplePresenceKnown(False, generation)


    def _simplePresenceKnown(self, success, generation):
        # Statuses fetched before the last Connecting are stale
        if generation == self._simplePresenceGeneration:
            self._simplePresenceResult = success
        else:
            debug('Discarding simple presence statuses fetched before '
                  'Connecting')

        feature = Connection.FeatureSimplePresence

        if feature in self._helper.inProgressFeatures():
            self._helper.setIntrospectCompleted(feature, success)

        self._queue.stepFinished()
