import sys

from teacheraid.cli import main

sys.exit(main())
