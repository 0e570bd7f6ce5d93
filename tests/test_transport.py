from twisted.internet import defer
from twisted.trial import unittest
from zope.interface.verify import verifyObject

from txtelepathy.transport import BusTransport, IBusTransport


class FakeMessage (object):

    def __init__(self, body):
        self.body = body


class FakeClientConnection (object):

    busName = ':1.42'

    def __init__(self):
        self.calls   = list()
        self.matches = list()
        self.removed = list()
        self.failDel = False

    def callRemote(self, objectPath, methodName, **kwargs):
        self.calls.append( (objectPath, methodName, kwargs) )
        return defer.succeed(None)

    def addMatch(self, callback, **kwargs):
        self.matches.append( (callback, kwargs) )
        return defer.succeed(len(self.matches))

    def delMatch(self, ruleId):
        self.removed.append(ruleId)
        if self.failDel:
            return defer.fail(Exception('no such rule'))
        return defer.succeed(None)


class BusTransportTester(unittest.TestCase):

    def setUp(self):
        self.conn = FakeClientConnection()
        self.t    = BusTransport(self.conn, timeout=5)

    def test_provides(self):
        self.assertTrue(verifyObject(IBusTransport, self.t))
        self.assertEqual(self.t.uniqueName, ':1.42')

    def test_default_timeout(self):
        self.t.callRemote('/a', 'Foo', interface='org.example.I',
                          destination='org.example')
        self.t.callRemote('/a', 'Bar', timeout=1)
        self.assertEqual(self.conn.calls[0][2]['timeout'], 5)
        self.assertEqual(self.conn.calls[0][2]['destination'], 'org.example')
        self.assertEqual(self.conn.calls[1][2]['timeout'], 1)

    def test_signal_arguments(self):
        got = list()

        def cb(*args):
            got.append(args)

        d = self.t.notifyOnSignal('org.example', '/a', 'org.example.I',
                                  'Changed', cb, [(0, 'x')])
        self.assertEqual(self.successResultOf(d), 1)

        caller, kwargs = self.conn.matches[0]
        self.assertEqual(kwargs['member'], 'Changed')
        self.assertEqual(kwargs['sender'], 'org.example')
        self.assertEqual(kwargs['arg'], [(0, 'x')])

        caller(FakeMessage([1, 'two']))
        caller(FakeMessage(None))
        self.assertEqual(got, [(1, 'two'), ()])

    def test_cancel_failure_logged(self):
        self.conn.failDel = True
        d = self.t.cancelSignalNotification(3)
        self.assertEqual(self.successResultOf(d), None)
        self.assertEqual(self.conn.removed, [3])
