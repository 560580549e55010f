"""Allow running as: python -m s3proxy"""

import sys

from .server import main

sys.exit(main())
