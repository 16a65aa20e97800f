# Allow running as python -m mcpm
import sys

from mcpm.cli import main

sys.exit(main())
