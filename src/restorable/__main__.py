import sys

from restorable.cli import main

sys.exit(main())
