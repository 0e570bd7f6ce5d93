"""
Reference counting of Telepathy handles.

Handles are only meaningful to the service that issued them, and a service
may free a handle once no client holds it. All proxies in this process that
talk to the same service share one L{HandleContext}, which counts local
references per (handle type, handle) and batches the ReleaseHandles calls
issued when a count drops to zero.

A handle whose last reference is dropped is moved to a to-release set and a
release sweep is scheduled. The sweep is held back while any request that
may return handles of the same type is in flight, since that request could
hand back (and expect us to hold) a handle we are about to release. Taking
a new reference on a handle waiting in the to-release set cancels its
release.
"""
import threading
import weakref

from txtelepathy.debug import debug, warning
from txtelepathy.pending import PendingOperation


# (bus unique name, service name) => HandleContext
_contexts     = dict()
_contextsLock = threading.Lock()



class _HandleTypeState (object):
    __slots__ = ['refcounts', 'toRelease', 'requestsInFlight',
                 'releaseScheduled']

    def __init__(self):
        self.refcounts        = dict() # handle => count
        self.toRelease        = set()
        self.requestsInFlight = 0
        self.releaseScheduled = False



class HandleContext (object):
    """
    Handle reference counts shared by every proxy connected to one service

    The methods that return a boolean return True when the caller is expected
    to schedule a release sweep for the handle type by eventually calling
    L{releaseSweep}.
    """

    def __init__(self, key):
        self.key      = key
        self.refcount = 0 # number of proxies sharing the context
        self.lock     = threading.Lock()
        self.types    = dict()


    def _type(self, handleType):
        t = self.types.get(handleType)
        if t is None:
            t = self.types[handleType] = _HandleTypeState()
        return t


    def ref(self, handleType, handle):
        with self.lock:
            t = self._type(handleType)

            t.toRelease.discard(handle)

            t.refcounts[handle] = t.refcounts.get(handle, 0) + 1


    def unref(self, handleType, handle):
        with self.lock:
            t = self._type(handleType)

            if handle not in t.refcounts:
                warning('Dropping a reference to handle %d of type %d which '
                        'is not held', handle, handleType)
                return False

            t.refcounts[handle] -= 1

            if t.refcounts[handle]:
                return False

            del t.refcounts[handle]
            t.toRelease.add(handle)

            if t.releaseScheduled or t.requestsInFlight:
                return False

            debug('Lost last reference to at least one handle of type %d and '
                  'no requests in flight for that type - scheduling a '
                  'release sweep', handleType)
            t.releaseScheduled = True
            return True


    def requestStarted(self, handleType):
        with self.lock:
            self._type(handleType).requestsInFlight += 1


    def requestLanded(self, handleType):
        with self.lock:
            t = self._type(handleType)

            if t.requestsInFlight <= 0:
                warning('Handle request of type %d landed but none was in '
                        'flight', handleType)
                return False

            t.requestsInFlight -= 1

            if t.requestsInFlight or not t.toRelease or t.releaseScheduled:
                return False

            debug('All handle requests for type %d landed and there are '
                  'handles of that type to release - scheduling a release '
                  'sweep', handleType)
            t.releaseScheduled = True
            return True


    def releaseSweep(self, handleType):
        """
        @returns: the list of handles the caller must now release on the
                  service, or None if there is nothing to release yet
        """
        with self.lock:
            t = self._type(handleType)

            t.releaseScheduled = False

            if t.requestsInFlight:
                debug('There are requests in flight, deferring sweep to when '
                      'they have been completed')
                return None

            if not t.toRelease:
                debug('No handles to release - every one has been resurrected')
                return None

            handles = sorted(t.toRelease)
            t.toRelease.clear()

            debug('Releasing %d handles of type %d', len(handles), handleType)
            return handles


    def partition(self, handleType, handles):
        """
        Splits handles into those already held in this process and those
        that are not.

        @returns: (alreadyHeld, notYetHeld)
        """
        alreadyHeld = list()
        notYetHeld  = list()

        with self.lock:
            t = self._type(handleType)

            for h in handles:
                if h in t.refcounts or h in t.toRelease:
                    alreadyHeld.append(h)
                else:
                    notYetHeld.append(h)

        return alreadyHeld, notYetHeld


    def refcounts(self, handleType):
        with self.lock:
            return dict(self._type(handleType).refcounts)


    def toRelease(self, handleType):
        with self.lock:
            return set(self._type(handleType).toRelease)


    def requestsInFlight(self, handleType):
        with self.lock:
            return self._type(handleType).requestsInFlight


    def _drain(self):
        with self.lock:
            flush = list()

            for handleType in sorted(self.types):
                t = self.types[handleType]

                if t.refcounts:
                    debug('Still had references to %d handles, releasing now',
                          len(t.refcounts))
                    flush.append( (handleType, sorted(t.refcounts)) )

                if t.toRelease:
                    debug('Was going to release %d handles, doing that now',
                          len(t.toRelease))
                    flush.append( (handleType, sorted(t.toRelease)) )

            self.types = dict()

            return flush



def acquireContext(uniqueName, serviceName):
    """
    Returns the context for (uniqueName, serviceName), creating it if needed,
    and takes a reference on it.
    """
    key = (uniqueName, serviceName)

    with _contextsLock:
        context = _contexts.get(key)

        if context is None:
            debug('Creating new HandleContext')
            context = _contexts[key] = HandleContext(key)
        else:
            debug('Reusing existing HandleContext')

        context.refcount += 1

        return context



def releaseContext(context):
    """
    Drops a reference on a context obtained from L{acquireContext}.

    @returns: a list of (handleType, handles) the caller must release on the
              service. It is only non-empty when the last reference is
              dropped while handles are still held or waiting for release.
    """
    with _contextsLock:
        context.refcount -= 1

        if context.refcount > 0:
            return []

        debug('Destroying HandleContext')

        if _contexts.get(context.key) is context:
            del _contexts[context.key]

        return context._drain()



def _unrefHandles(connectionRef, handleType, handles):
    conn = connectionRef()

    # The connection is gone. Its references stay in the shared context until
    # the last connection using that context releases it
    if conn is None:
        return

    for h in handles:
        conn.unrefHandle(handleType, h)



class ReferencedHandles (object):
    """
    An immutable sequence of handles of one type, each of which holds one
    reference through the connection it came from. The references are
    dropped by L{release} or when the instance is garbage collected.
    """

    def __init__(self, connection, handleType, handles):
        self.handleType = handleType
        self._handles   = tuple(handles)
        self._connRef   = weakref.ref(connection)

        for h in self._handles:
            connection.refHandle(handleType, h)

        self._finalizer = weakref.finalize(self, _unrefHandles,
                                           self._connRef, handleType,
                                           self._handles)
        self._finalizer.atexit = False


    def connection(self):
        return self._connRef()


    def release(self):
        """
        Drops the references now. Calling it more than once has no effect.
        """
        self._finalizer()


    def isReleased(self):
        return not self._finalizer.alive


    def __len__(self):
        return len(self._handles)


    def __iter__(self):
        return iter(self._handles)


    def __getitem__(self, idx):
        return self._handles[idx]


    def __contains__(self, handle):
        return handle in self._handles


    def __eq__(self, other):
        if isinstance(other, ReferencedHandles):
            other = other._handles
        return self._handles == tuple(other)


    def __ne__(self, other):
        return not self == other


    __hash__ = None


    def __repr__(self):
        return '<ReferencedHandles type=%d %r>' % (self.handleType,
                                                   list(self._handles))



class PendingHandles (PendingOperation):
    """
    Result of L{connection.Connection.requestHandles} and
    L{connection.Connection.referenceHandles}

    @ivar handleType: Type of the handles
    @ivar namesRequested: Names passed to requestHandles, otherwise None
    @ivar handlesRequested: Handles passed to referenceHandles, otherwise None
    """

    def __init__(self, connection, handleType, names=None, handles=None):
        PendingOperation.__init__(self)
        self.connection       = connection
        self.handleType       = handleType
        self.namesRequested   = list(names) if names is not None else None
        self.handlesRequested = list(handles) if handles is not None else None
        self._handles         = None
        self._inFlight        = False


    def isRequest(self):
        return self.namesRequested is not None


    def handles(self):
        """
        @rtype: L{ReferencedHandles}
        @returns: the handles, or None unless the operation succeeded
        """
        if not self.isFinished():
            warning('PendingHandles.handles() called before finished')
        elif self.isError():
            warning('PendingHandles.handles() called when errored')
        return self._handles


    def _track(self, d):
        self._inFlight = True
        self.connection.handleRequestStarted(self.handleType)

        if self.isRequest():
            d.addCallbacks(self._cbGotHandles, self._ebFailed)
        else:
            d.addCallbacks(self._cbHeld, self._ebFailed)


    def _landed(self):
        if self._inFlight:
            self._inFlight = False
            self.connection.handleRequestLanded(self.handleType)


    def _cbGotHandles(self, handles):
        debug('Received reply to RequestHandles')
        # Reference before landing so a sweep can't release them in between
        self._handles = ReferencedHandles(self.connection, self.handleType,
                                          handles or [])
        self._landed()
        self.setFinished()


    def _cbHeld(self, _=None):
        debug('Received reply to HoldHandles')
        self._handles = ReferencedHandles(self.connection, self.handleType,
                                          self.handlesRequested)
        self._landed()
        self.setFinished()


    def _ebFailed(self, failure):
        self._landed()
        self.setFinishedWithFailure(failure)
