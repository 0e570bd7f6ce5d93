from twisted.internet import task
from twisted.trial import unittest

from txtelepathy import error
from txtelepathy.proxy import DBusProxy
from txtelepathy.readiness import Introspectable, ReadinessHelper

from tests.fakebus import FakeBus


OFFLINE = 0
ONLINE  = 1

IFACE_X = 'org.example.X'


class ReadinessHelperTester(unittest.TestCase):

    def setUp(self):
        self.clock   = task.Clock()
        self.bus     = FakeBus()
        self.proxy   = DBusProxy(self.bus, 'org.example.Service', '/obj',
                                 self.clock)
        self.started = list()

    def feature(self, name, statuses=(OFFLINE, ONLINE), features=(),
                interfaces=(), autoComplete=None):
        def introspect():
            self.started.append(name)
            if autoComplete is not None:
                self.helper.setIntrospectCompleted(name, autoComplete)
        return Introspectable(statuses, features, interfaces, introspect)

    def makeHelper(self, introspectables, status=ONLINE, supported=None):
        self.helper = ReadinessHelper(self.proxy, status, introspectables,
                                      supported, self.clock)
        return self.helper

    def checkDisjoint(self):
        h = self.helper
        ready, missing, busy = (h.actualFeatures(), h.missingFeatures(),
                                h.inProgressFeatures())
        self.assertEqual(ready & missing, frozenset())
        self.assertEqual(ready & busy, frozenset())
        self.assertEqual(missing & busy, frozenset())

    def test_unknown_feature(self):
        h  = self.makeHelper({'a': self.feature('a')})
        op = h.becomeReady(['nope'])
        self.assertEqual(op.errorName, error.INVALID_ARGUMENT)

    def test_become_ready(self):
        h  = self.makeHelper({'a': self.feature('a')})
        op = h.becomeReady(['a'])

        self.clock.advance(0)
        self.assertEqual(self.started, ['a'])
        self.assertFalse(op.isFinished())
        self.assertEqual(h.inProgressFeatures(), frozenset(['a']))
        self.checkDisjoint()

        h.setIntrospectCompleted('a', True)
        self.clock.advance(0)

        self.assertTrue(op.isValid())
        self.assertTrue(h.isReady(['a']))
        self.assertEqual(h.actualFeatures(), frozenset(['a']))
        self.checkDisjoint()

    def test_same_request_same_operation(self):
        h   = self.makeHelper({'a': self.feature('a')})
        op1 = h.becomeReady(['a'])
        op2 = h.becomeReady(['a'])
        self.assertIdentical(op1, op2)

    def test_already_ready(self):
        h = self.makeHelper({'a': self.feature('a', autoComplete=True)})
        h.becomeReady(['a'])
        self.clock.advance(0)
        self.assertTrue(h.becomeReady(['a']).isValid())

    def test_dependencies_first(self):
        h  = self.makeHelper({'a': self.feature('a'),
                              'b': self.feature('b', features=['a'])})
        op = h.becomeReady(['b'])

        self.clock.advance(0)
        self.assertEqual(self.started, ['a'])
        self.assertEqual(h.requestedFeatures(), frozenset(['a', 'b']))

        h.setIntrospectCompleted('a', True)
        self.clock.advance(0)
        self.assertEqual(self.started, ['a', 'b'])

        h.setIntrospectCompleted('b', True)
        self.clock.advance(0)
        self.assertTrue(op.isValid())

    def test_registration_order(self):
        intro = dict()
        for name in ['c', 'a', 'b']:
            intro[name] = self.feature(name)
        h = self.makeHelper(intro)
        h.becomeReady(['a', 'b', 'c'])
        self.clock.advance(0)
        self.assertEqual(self.started, ['c', 'a', 'b'])

    def test_missing_interface(self):
        h = self.makeHelper({'a': self.feature('a', autoComplete=True),
                             'x': self.feature('x', features=['a'],
                                               interfaces=[IFACE_X]),
                             'y': self.feature('y', features=['x'])})
        h.setInterfaces(['org.example.Other'])

        op = h.becomeReady(['x', 'y'])
        self.clock.advance(0)

        self.assertTrue(op.isValid())
        self.assertEqual(h.missingFeatures(), frozenset(['x', 'y']))
        self.assertEqual(self.started, ['a'])
        self.checkDisjoint()

    def test_waits_for_interfaces(self):
        h  = self.makeHelper({'x': self.feature('x', interfaces=[IFACE_X],
                                                autoComplete=True)})
        op = h.becomeReady(['x'])
        self.clock.advance(0)
        self.assertFalse(op.isFinished())

        h.setInterfaces([IFACE_X])
        self.clock.advance(0)
        self.assertTrue(op.isValid())
        self.assertEqual(h.actualFeatures(), frozenset(['x']))

    def test_failed_dependency(self):
        h  = self.makeHelper({'a': self.feature('a', autoComplete=False),
                              'b': self.feature('b', features=['a'])})
        op = h.becomeReady(['b'])
        self.clock.advance(0)

        self.assertTrue(op.isValid())
        self.assertEqual(h.missingFeatures(), frozenset(['a', 'b']))
        self.assertEqual(self.started, ['a'])

    def test_senseless_status(self):
        h  = self.makeHelper({'a': self.feature('a', statuses=[ONLINE])},
                             status=OFFLINE, supported=[OFFLINE, ONLINE])
        op = h.becomeReady(['a'])
        self.clock.advance(0)
        self.assertTrue(op.isValid())
        self.assertEqual(h.missingFeatures(), frozenset(['a']))

    def test_unsupported_status_waits(self):
        h  = self.makeHelper({'a': self.feature('a', statuses=[ONLINE],
                                                autoComplete=True)},
                             status=OFFLINE)
        op = h.becomeReady(['a'])
        self.clock.advance(0)
        self.assertFalse(op.isFinished())
        self.assertEqual(h.missingFeatures(), frozenset())

        h.setCurrentStatus(ONLINE)
        self.clock.advance(0)
        self.assertTrue(op.isValid())
        self.assertEqual(h.actualFeatures(), frozenset(['a']))

    def test_status_change_deferred_while_in_flight(self):
        h = self.makeHelper({'a': self.feature('a')},
                            supported=[OFFLINE, ONLINE])
        h.becomeReady(['a'])
        self.clock.advance(0)

        h.setCurrentStatus(OFFLINE)
        self.assertEqual(h.currentStatus(), ONLINE)

        h.setIntrospectCompleted('a', True)
        self.assertEqual(h.currentStatus(), OFFLINE)
        self.assertEqual(h.actualFeatures(), frozenset())

        self.clock.advance(0)
        self.assertEqual(self.started, ['a', 'a'])

    def test_status_ready(self):
        statuses = list()
        h = self.makeHelper({'a': self.feature('a', autoComplete=True)})
        h.notifyOnStatusReady(statuses.append)
        h.becomeReady(['a'])
        self.clock.advance(0)
        h.setInterfaces([])
        self.clock.advance(0)
        self.assertEqual(statuses, [ONLINE])

    def test_invalidation_fails_requests(self):
        h  = self.makeHelper({'a': self.feature('a')})
        op = h.becomeReady(['a'])
        self.clock.advance(0)

        self.proxy.invalidate('org.example.Synthetic', 'bye')
        self.assertFalse(h.isReady(['a']))
        self.clock.advance(0)

        self.assertEqual(op.errorName, 'org.example.Synthetic')
        self.assertEqual(op.errorMessage, 'bye')

        op2 = h.becomeReady(['a'])
        self.assertEqual(op2.errorName, 'org.example.Synthetic')
