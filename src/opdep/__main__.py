import sys

from opdep.cli import main

sys.exit(main())
