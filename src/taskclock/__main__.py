"""Allow `python -m taskclock` to run the command line."""

import sys

from taskclock.cli import main

sys.exit(main())
