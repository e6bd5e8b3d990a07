import sys

from duidstuff.cli import main

sys.exit(main())
