import sys

from .main_prune import main

sys.exit(main())
