import sys

from ghdl.cli import main

sys.exit(main())
