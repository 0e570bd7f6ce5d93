"""
Cooperative queue of introspection steps.

A step is a callable that starts one asynchronous call on the remote object
and returns. When the call completes, the step's reply handler may enqueue
more steps and must then call L{IntrospectQueue.stepFinished}, which runs
the next step. Only one step runs at a time. When a step finishes and the
queue is empty, the drained callback is called.
"""
from collections import deque

from txtelepathy.debug import debug


class IntrospectQueue (object):
    """
    @ivar onDrained: Callable invoked with no arguments whenever the queue
                     runs empty
    """

    def __init__(self, onDrained):
        self.onDrained = onDrained
        self._steps    = deque()
        self._running  = None
        self._dead     = False


    def __len__(self):
        return len(self._steps)


    def __contains__(self, step):
        return step in self._steps or step == self._running


    def enqueue(self, step):
        if self._dead:
            debug('Not enqueueing %s, introspection was abandoned',
                  _stepName(step))
            return
        self._steps.append(step)


    def isRunning(self):
        return self._running is not None


    def isDead(self):
        return self._dead


    def clear(self):
        self._steps.clear()


    def abandon(self):
        """
        Clears the queue for good. Replies to a step still in flight are
        ignored and nothing is ever run again.
        """
        self._dead = True
        self._steps.clear()


    def kick(self):
        """
        Runs the next step unless one is already running
        """
        if self._running is None:
            self._continue()


    def stepFinished(self):
        self._running = None
        self._continue()


    def _continue(self):
        if self._dead:
            return

        if not self._steps:
            self.onDrained()
            return

        step = self._steps.popleft()
        debug('Running introspection step %s', _stepName(step))

        self._running = step
        step()



def _stepName(step):
    return getattr(step, '__name__', repr(step))
