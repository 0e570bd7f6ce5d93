import logging

from twisted.python import log
from twisted.trial import unittest

from txtelepathy import debug


class DebugOutputTester(unittest.TestCase):

    def setUp(self):
        self.events = list()
        log.addObserver(self.events.append)
        self.addCleanup(log.removeObserver, self.events.append)
        self.addCleanup(debug.enableDebug, False)
        self.addCleanup(debug.enableWarnings, True)

    def messages(self):
        return [ (e['logLevel'], ''.join(e['message'])) for e in self.events
                 if e.get('system') == 'txtelepathy' ]

    def test_debug_disabled_by_default(self):
        debug.debug('hidden %d', 1)
        self.assertEqual(self.messages(), [])

    def test_debug_enabled(self):
        debug.enableDebug(True)
        debug.debug('shown %d', 2)
        self.assertEqual(self.messages(), [(logging.DEBUG, 'shown 2')])

    def test_warnings(self):
        debug.warning('careful')
        debug.enableWarnings(False)
        debug.warning('muted')
        self.assertEqual(self.messages(),
                         [(logging.WARNING, 'WARNING: careful')])
