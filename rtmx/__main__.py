import sys

from rtmx.cli.main import main

sys.exit(main())
