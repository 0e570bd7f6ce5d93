"""
In-memory bus and Telepathy connection service used by the tests.

Method calls are dispatched synchronously to the exported service objects;
their replies are delivered through already-fired Deferreds unless the
method has been told to hold its replies.
"""
import itertools

from twisted.internet import defer
from zope.interface import implementer

from txtelepathy import constants, error
from txtelepathy.error import TelepathyError
from txtelepathy.transport import IBusTransport


_busNumbers = itertools.count(1)


@implementer(IBusTransport)
class FakeBus (object):

    def __init__(self, uniqueName=None):
        if uniqueName is None:
            uniqueName = ':1.%d' % next(_busNumbers)
        self.uniqueName = uniqueName
        self.calls      = list()
        self.objects    = dict()
        self.rules      = dict()
        self.nextRule   = 1


    def export(self, busName, objectPath, obj):
        self.objects[ (busName, objectPath) ] = obj


    def callsTo(self, methodName, objectPath=None):
        return [ c for c in self.calls if c[3] == methodName and
                 (objectPath is None or c[1] == objectPath) ]


    def callRemote(self, objectPath, methodName, interface=None,
                   destination=None, signature=None, body=None, timeout=None):
        body = list(body or [])

        self.calls.append( (destination, objectPath, interface, methodName,
                            body) )

        obj = self.objects.get( (destination, objectPath) )

        if obj is None:
            return defer.fail(TelepathyError(error.NAME_HAS_NO_OWNER,
                                             'No such object'))

        m = getattr(obj, methodName, None)

        if m is None:
            return defer.fail(TelepathyError(
                'org.freedesktop.DBus.Error.UnknownMethod', methodName))

        try:
            result = m(*body)
        except TelepathyError:
            return defer.fail()

        if methodName in obj.held:
            d = defer.Deferred()
            obj.heldReplies.append( (methodName, d, result) )
            return d

        return defer.succeed(result)


    def notifyOnSignal(self, busName, objectPath, interface, signalName,
                       callback, arg=None):
        ruleId = self.nextRule
        self.nextRule += 1

        self.rules[ruleId] = (busName, objectPath, interface, signalName,
                              callback, arg or [])

        return defer.succeed(ruleId)


    def cancelSignalNotification(self, ruleId):
        self.rules.pop(ruleId, None)
        return defer.succeed(None)


    def emitSignal(self, busName, objectPath, interface, signalName, *args):
        for rule in list(self.rules.values()):
            rbus, rpath, riface, rname, cb, arg = rule

            if (rbus, rpath, riface, rname) != (busName, objectPath, interface,
                                                signalName):
                continue

            if any( idx >= len(args) or args[idx] != val for idx, val in arg ):
                continue

            cb(*args)


    def dropName(self, busName):
        self.emitSignal(constants.DBUS_SERVICE, constants.DBUS_PATH,
                        constants.DBUS_INTERFACE, 'NameOwnerChanged',
                        busName, ':1.99', '')



class FakeConnectionService (object):
    """
    A Telepathy connection exported on a L{FakeBus}
    """

    def __init__(self, bus, busName, objectPath,
                 status     = constants.CONNECTION_STATUS_DISCONNECTED,
                 interfaces = (),
                 selfHandle = 1):
        self.bus             = bus
        self.busName         = busName
        self.objectPath      = objectPath
        self.status          = status
        self.interfaces      = list(interfaces)
        self.selfHandle      = selfHandle
        self.handleNames     = dict()
        self.nextHandle      = 100
        self.released        = list()
        self.held            = set()
        self.heldReplies     = list()
        self.failing         = dict()
        self.contactAttrs    = dict()
        self.attrInterfaces  = [constants.CONN_INTERFACE_ALIASING,
                                constants.CONN_INTERFACE_SIMPLE_PRESENCE]
        self.presenceStatuses = {'available' : (2, True, True),
                                 'offline'   : (1, False, False)}
        self.presence        = None
        self.channels        = list()

        bus.export(busName, objectPath, self)


    def holdReplies(self, methodName):
        self.held.add(methodName)


    def releaseReplies(self, methodName):
        self.held.discard(methodName)

        replies = [ r for r in self.heldReplies if r[0] == methodName ]

        self.heldReplies = [ r for r in self.heldReplies
                             if r[0] != methodName ]

        for _, d, result in replies:
            d.callback(result)


    def fail(self, methodName, errorName, errorMessage=''):
        self.failing[methodName] = (errorName, errorMessage)


    def _check(self, methodName):
        if methodName in self.failing:
            raise TelepathyError(*self.failing[methodName])


    def setStatus(self, status, reason=constants.CONNECTION_STATUS_REASON_REQUESTED):
        self.status = status
        self.bus.emitSignal(self.busName, self.objectPath,
                            constants.CONN_INTERFACE, 'StatusChanged',
                            status, reason)


    def changeSelfHandle(self, handle):
        self.selfHandle = handle
        self.bus.emitSignal(self.busName, self.objectPath,
                            constants.CONN_INTERFACE, 'SelfHandleChanged',
                            handle)


    # Remote methods
    def GetStatus(self):
        self._check('GetStatus')
        return self.status

    def GetInterfaces(self):
        self._check('GetInterfaces')
        return list(self.interfaces)

    def GetSelfHandle(self):
        self._check('GetSelfHandle')
        return self.selfHandle

    def Connect(self):
        self._check('Connect')

    def Disconnect(self):
        self._check('Disconnect')

    def RequestHandles(self, handleType, names):
        self._check('RequestHandles')
        result = list()
        for n in names:
            if n not in self.handleNames:
                self.handleNames[n] = self.nextHandle
                self.nextHandle += 1
            result.append(self.handleNames[n])
        return result

    def HoldHandles(self, handleType, handles):
        self._check('HoldHandles')

    def ReleaseHandles(self, handleType, handles):
        self.released.append( (handleType, list(handles)) )

    def Get(self, interface, prop):
        self._check('Get')
        if (interface, prop) == (constants.CONN_INTERFACE_CONTACTS,
                                 'ContactAttributeInterfaces'):
            return list(self.attrInterfaces)
        if (interface, prop) == (constants.CONN_INTERFACE_SIMPLE_PRESENCE,
                                 'Statuses'):
            return dict(self.presenceStatuses)
        raise TelepathyError('org.freedesktop.DBus.Error.InvalidArgs', prop)

    def GetContactAttributes(self, handles, interfaces, hold):
        self._check('GetContactAttributes')
        result = dict()
        for h in handles:
            if h == self.selfHandle or h in self.contactAttrs:
                attrs = {constants.CONN_INTERFACE + '/contact-id' :
                         'contact%d@example.com' % h}
                attrs.update(self.contactAttrs.get(h, {}))
                result[h] = attrs
        return result

    def SetPresence(self, status, message):
        self._check('SetPresence')
        self.presence = (status, message)

    def CreateChannel(self, request):
        self._check('CreateChannel')
        path = '%s/channel%d' % (self.objectPath, len(self.channels))
        self.channels.append(path)
        return [path, dict(request)]

    def EnsureChannel(self, request):
        self._check('EnsureChannel')
        if self.channels:
            return [False, self.channels[0], dict(request)]
        path = self.CreateChannel(request)[0]
        return [True, path, dict(request)]
