# Unit test driver. Equivalent to "trial tests".

import os
import sys

from twisted.scripts import trial

topdir = os.path.split(os.path.abspath(__file__))[0]
os.chdir(topdir)
sys.path.insert(0, topdir)

sys.argv[1:] = sys.argv[1:] or ['tests']

trial.run()
