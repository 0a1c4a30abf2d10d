import sys

from window_sweep.main import main

sys.exit(main())
