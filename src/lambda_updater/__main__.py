import sys

from lambda_updater.cli import main

sys.exit(main())
