"""Allow ``python -m cred_atlas``."""

import sys

from cred_atlas.cli import main

sys.exit(main())
