import sys

from adjudication.cli.main import main

sys.exit(main())
