import sys

from misbehaviour_tool.cli import main

sys.exit(main())
