import sys

from passvault.passvault_cli import main

sys.exit(main())
