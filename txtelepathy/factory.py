"""
Factories handing out shared proxies.

A factory keeps weak references to the proxies it builds, keyed by (bus
connection unique name, bus name, object path). While a proxy for a key is
alive and valid, every request for that key returns it; otherwise a new
proxy is built. The factory never keeps a proxy alive by itself.
"""
import weakref

from twisted.internet import reactor as _globalReactor

from txtelepathy.connection import Connection
from txtelepathy.debug import debug
from txtelepathy.readiness import PendingReady


class DBusProxyFactory (object):
    """
    Base class of the proxy factories. Subclasses implement L{construct}
    and L{featuresFor}.

    @ivar transport: Provider of L{transport.IBusTransport} the proxies use
    """

    def __init__(self, transport, reactor=None):
        if reactor is None:
            reactor = _globalReactor

        self.transport = transport
        self.reactor   = reactor
        self._proxies  = weakref.WeakValueDictionary()


    def _key(self, busName, objectPath):
        return (self.transport.uniqueName, busName, objectPath)


    def cachedProxy(self, busName, objectPath):
        """
        @returns: The cached valid proxy for (busName, objectPath), or None
        """
        proxy = self._proxies.get(self._key(busName, objectPath))

        if proxy is not None and proxy.isValid():
            return proxy


    def proxy(self, busName, objectPath):
        """
        Returns an operation that finishes once the proxy for
        (busName, objectPath) has the factory's features ready. The proxy is
        available immediately as the C{proxy} attribute of the operation.

        @rtype: L{readiness.PendingReady}
        """
        proxy = self.cachedProxy(busName, objectPath)

        if proxy is None:
            debug('Creating new proxy for %s %s', busName, objectPath)

            proxy = self.construct(busName, objectPath)

            self._proxies[ self._key(busName, objectPath) ] = proxy

            proxy.notifyOnInvalidated(self._onProxyInvalidated)
        else:
            debug('Returning cached proxy for %s %s', busName, objectPath)

        features = self.featuresFor(proxy)

        pending = PendingReady(features, proxy)

        pending.chain(proxy.becomeReady(features))

        return pending


    def construct(self, busName, objectPath):
        raise NotImplementedError


    def featuresFor(self, proxy):
        raise NotImplementedError


    def _onProxyInvalidated(self, proxy, errorName, errorMessage):
        key = self._key(proxy.busName, proxy.objectPath)

        if self._proxies.get(key) is proxy:
            debug('Removing invalidated proxy %s %s from the cache',
                  proxy.busName, proxy.objectPath)
            del self._proxies[key]



class ConnectionFactory (DBusProxyFactory):
    """
    Builds L{connection.Connection} proxies

    @ivar features: Connection features made ready on every proxy handed out
    """

    def __init__(self, transport, features=None, reactor=None):
        DBusProxyFactory.__init__(self, transport, reactor)
        self.features = frozenset(features or ())


    def construct(self, busName, objectPath):
        return Connection(self.transport, busName, objectPath, self.reactor)


    def featuresFor(self, proxy):
        return self.features | frozenset([Connection.FeatureCore])
