import sys

from lbdrain.cli import main

sys.exit(main())
