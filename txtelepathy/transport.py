"""
The message-bus seam used by the proxies.

Proxies never talk to a bus connection directly; they use an object
providing L{IBusTransport}. L{BusTransport} adapts a
L{txdbus.client.DBusClientConnection} to that interface, and tests provide
their own in-memory implementations.
"""
from zope.interface import Interface, Attribute, implementer

from txdbus import client

from txtelepathy.debug import warning


class IBusTransport (Interface):
    """
    Method calls and signal subscriptions on one bus connection
    """

    uniqueName = Attribute('Unique name of the underlying bus connection. '
                           'Used to tell apart proxies living on different '
                           'buses.')

    def callRemote(objectPath, methodName, interface=None, destination=None,
                   signature=None, body=None, timeout=None):
        """
        Calls a method on a remote object.

        @rtype: L{twisted.internet.defer.Deferred}
        @returns: a Deferred to the reply. Multiple return values are
                  delivered as a list. Error replies errback the Deferred.
        """

    def notifyOnSignal(busName, objectPath, interface, signalName, callback,
                       arg=None):
        """
        Subscribes to a signal emitted by (busName, objectPath). The callback
        is called with the signal arguments as positional arguments.

        @param arg: Optional list of (index, value) argument matches

        @rtype: L{twisted.internet.defer.Deferred}
        @returns: a Deferred to a rule id accepted by
                  cancelSignalNotification
        """

    def cancelSignalNotification(ruleId):
        """
        Cancels a subscription made with notifyOnSignal
        """



@implementer(IBusTransport)
class BusTransport (object):
    """
    L{IBusTransport} on top of a connected
    L{txdbus.client.DBusClientConnection}

    @ivar conn: The bus connection
    @ivar timeout: Timeout in seconds applied to calls that don't specify
                   one. None leaves calls without a timeout.
    """

    def __init__(self, conn, timeout=None):
        self.conn    = conn
        self.timeout = timeout


    @property
    def uniqueName(self):
        return self.conn.busName


    def callRemote(self, objectPath, methodName, interface=None,
                   destination=None, signature=None, body=None, timeout=None):
        if timeout is None:
            timeout = self.timeout

        return self.conn.callRemote(objectPath, methodName,
                                    interface   = interface,
                                    destination = destination,
                                    signature   = signature,
                                    body        = body,
                                    timeout     = timeout)


    def notifyOnSignal(self, busName, objectPath, interface, signalName,
                       callback, arg=None):

        def callback_caller(sig_msg):
            if sig_msg.body:
                callback(*sig_msg.body)
            else:
                callback()

        return self.conn.addMatch(callback_caller,
                                  mtype     = 'signal',
                                  sender    = busName,
                                  path      = objectPath,
                                  interface = interface,
                                  member    = signalName,
                                  arg       = arg)


    def cancelSignalNotification(self, ruleId):
        d = self.conn.delMatch(ruleId)

        def err(failure):
            warning('Failed to remove signal match %s: %s', ruleId,
                    failure.getErrorMessage())

        d.addErrback(err)

        return d



def connect(reactor, busAddress='session', timeout=None):
    """
    Connects to the specified bus and returns a Deferred to a
    L{BusTransport} wrapping the connection.

    @param busAddress: 'session', 'system', or a valid bus address as defined
                       by the DBus specification. See L{txdbus.client.connect}

    @param timeout: Default timeout for method calls, in seconds

    @rtype: L{twisted.internet.defer.Deferred}
    """
    d = client.connect(reactor, busAddress)

    d.addCallback(BusTransport, timeout)

    return d
