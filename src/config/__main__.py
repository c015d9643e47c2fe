"""python -m config"""

import sys

from config.config import _cli_main

sys.exit(_cli_main())
