import sys

from tdsweb.cli import main

sys.exit(main())
