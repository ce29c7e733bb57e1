import sys

from lmmdeck.cli import main

sys.exit(main())
