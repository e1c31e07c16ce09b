import sys

from dirlock.cli.main import main

sys.exit(main())
